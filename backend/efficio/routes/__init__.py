# Routes package init
"""
Efficio Backend — API Routes Package
======================================

Route Inventory:
    - users.py:     POST /api/user, DELETE /api/user/{id}
    - sessions.py:  POST /api/login, POST /api/logout/{id}
    - stores.py:    GET|POST /api/store, GET|PUT|DELETE /api/store/{id},
                    POST /api/store/{id}/aisle
    - aisles.py:    PUT|DELETE /api/aisle/{id}, POST /api/aisle/{id}/product
    - products.py:  PUT|DELETE /api/product/{id}
    - misc.py:      PUT /api/sort_weight, POST /api/nuke (debug only)
    - health.py:    GET /health

Routes stay thin: read the x-auth-token header and the body, call one
service method, return its result. Errors propagate to the handlers in main.py.
"""
