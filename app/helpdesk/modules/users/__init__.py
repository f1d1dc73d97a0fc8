"""
Users module (Admin and ManagerAdmin).

Role hierarchy is enforced in service.py: an actor only ever creates, edits or
deletes users whose role it is allowed to assign.
"""
