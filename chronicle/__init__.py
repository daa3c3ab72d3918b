"""Chronicle: non-invasive change auditing for mutable domain entities.

Every create, update and delete on a registered entity produces one
immutable audit event carrying a field-level change set, a readable
summary, the acting initiator and the entity version after the commit.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
