"""Collaborator services consumed by the registrar.

- Directory: node -> (owner, resolver), with subnode creation
- Resolver: node -> target address, writable by the node's owner
- Code inspector: answers whether an address holds deployed code
"""
