"""Business logic services.

Services are called by route handlers and by the operation dispatcher and
own every database read and write. Each module covers one concern:
identity, touch, hush, direct_chats, ordering, messages, snapshot, ops.
"""
