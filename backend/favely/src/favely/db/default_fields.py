import copy

# Default fields of a list document
list_fields = {
    "title": None,  # str
    "description": None,  # str | None
    "category": "other",  # one of LIST_CATEGORIES
    "visibility": "public",  # public | unlisted | private
    "listType": "ordered",  # ordered | bullet
    "owner": None,  # {"userId": ObjectId, "clerkId": str, "username": str, "joinedAt": datetime}
    "collaborators": [],  # list of collaborator sub-documents
    "items": [],  # list of item sub-documents
    "stats": {"viewCount": 0, "pinCount": 0, "copyCount": 0},
    "editedAt": None,  # datetime | None
}

# Default fields of a user document
user_fields = {
    "clerkId": None,  # str, identity provider user id
    "username": None,  # str, unique
    "displayName": "",
    "imageUrl": None,
    "searchIndex": "",
    "email": None,
    "bio": None,
    "location": None,
    "dateOfBirth": None,
    "gender": None,
    "livingStatus": None,
    "privacySettings": {
        "showDateOfBirth": False,
        "showGender": True,
        "showLivingStatus": True,
    },
    "followersCount": 0,
    "followingCount": 0,
    "listCount": 0,
}


def new_list_document(**values) -> dict:
    doc = copy.deepcopy(list_fields)
    doc.update(values)
    return doc


def new_user_document(**values) -> dict:
    doc = copy.deepcopy(user_fields)
    doc.update(values)
    return doc
