"""
Tickets module.

- List with search, filters and sort orders
- Create / edit (all roles), delete (office roles only)
- Printable work-order sheet
"""
