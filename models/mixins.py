# models/mixins.py


class AccessControlled:
    """
    Capability shared by folders and files so the access resolver never has
    to branch on the concrete type.

    Implementers provide ``owner_id``, ``resource_type`` and
    ``inheritance_parent()``. ``inheritance_chain()`` returns the resource
    followed by the ancestors it inherits from, nearest first.
    """
    resource_type = None

    def inheritance_parent(self):
        raise NotImplementedError

    def inheritance_chain(self):
        chain = []
        node = self
        while node is not None:
            chain.append(node)
            node = node.inheritance_parent()
        return chain

    def is_owned_by(self, user_id) -> bool:
        return self.owner_id is not None and self.owner_id == user_id

    # Import here to avoid circular imports
    def resolve_access(self, user):
        from services.access_resolver import access_resolver
        return access_resolver.resolve(user, self)

    def effective_permission(self, user):
        return self.resolve_access(user).level

    def can_read(self, user) -> bool:
        return self.resolve_access(user).can_read

    def can_write(self, user) -> bool:
        return self.resolve_access(user).can_write

    def has_full_access(self, user) -> bool:
        return self.resolve_access(user).has_full_access
