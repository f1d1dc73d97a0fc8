"""
Clients module.

- Clients CRUD for office roles (Manager and above)
- Delete refused by the store while tickets still reference the client
- City/state feed the default location of new tickets
"""
