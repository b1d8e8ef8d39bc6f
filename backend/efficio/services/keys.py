"""
Efficio Backend — Store Key Layout
====================================

What:  Names of every key and hash field the data layer writes.
How:   Small builder functions so no service formats a key by hand.

Layout:
    users                      hash  lower(username) → user id
    user:{id}                  hash  username, email, password, salt_mail, salt_password
    sessions                   hash  token → user id
    sessions:{user}            set   tokens of one user
    store:{id}                 hash  name, owner_id
    stores:{user}              set   store ids of one user
    aisle:{id}                 hash  name, sort_weight, owner_id, store_id
    aisles_in_store:{store}    set   aisle ids of one store
    product:{id}               hash  name, quantity, unit, is_done, sort_weight, owner_id, aisle_id
    products_in_aisle:{aisle}  set   product ids of one aisle
    next_{kind}_id             str   id counter
    {kind}_id_salt             str   id salt, created once
"""

USERS = "users"
SESSIONS = "sessions"

# Field names shared by several record kinds
NAME = "name"
OWNER = "owner_id"
SORT_WEIGHT = "sort_weight"

USER_USERNAME = "username"
USER_EMAIL = "email"
USER_PASSWORD = "password"
USER_SALT_MAIL = "salt_mail"
USER_SALT_PASSWORD = "salt_password"

AISLE_STORE = "store_id"

PRODUCT_QUANTITY = "quantity"
PRODUCT_UNIT = "unit"
PRODUCT_DONE = "is_done"
PRODUCT_AISLE = "aisle_id"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def user_sessions_key(user_id: str) -> str:
    return f"sessions:{user_id}"


def store_key(store_id: str) -> str:
    return f"store:{store_id}"


def user_stores_key(user_id: str) -> str:
    return f"stores:{user_id}"


def aisle_key(aisle_id: str) -> str:
    return f"aisle:{aisle_id}"


def aisles_in_store_key(store_id: str) -> str:
    return f"aisles_in_store:{store_id}"


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def products_in_aisle_key(aisle_id: str) -> str:
    return f"products_in_aisle:{aisle_id}"


def counter_key(kind: str) -> str:
    return f"next_{kind}_id"


def salt_key(kind: str) -> str:
    return f"{kind}_id_salt"
