# Services package init
"""
Efficio Backend — Services Layer
==================================

What:  The grocery data layer: repositories, sessions, permissions, ids and
       the transaction discipline tying them together.
How:   Every service receives the capability store handle (and its peers)
       through its constructor; ServiceContainer wires them once per process.

Service Inventory:
    - TransactionEngine: watched, all-or-nothing commits (no retry)
    - IdAllocator: counter + salt → sha256 ids per entity kind
    - SessionManager: token ↔ user bindings, logout, logout-all
    - PermissionGuard: acting user must be the recorded owner
    - StoreRepository / AisleRepository / ProductRepository: the ownership tree
    - ReorderService: batch sort-weight updates
    - UserService: registration, login, account deletion
"""
