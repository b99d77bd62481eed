"""
Content access and subscription claim core.

Decides whether a principal may open a catalog item (ownership, purchase,
subscription claim, delegated claim) and governs monthly claim allowances.
"""
