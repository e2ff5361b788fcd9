"""Errors specific to the pricing domain.

Validation, not-found and invalid-operation failures use the exceptions Protean
already ships (``ValidationError``, ``ObjectNotFoundError``,
``InvalidOperationError``). Protean has no kind for uniqueness clashes inside an
aggregate, so it is declared here on the same base class and carries the same
``{field: [messages]}`` payload.
"""

from protean.exceptions import ProteanException


class ConflictError(ProteanException):
    """An operation would break a uniqueness rule of the cart.

    Raised for a duplicate discount name, a duplicate freebie rule name, or a
    freebie rule that clashes with the rules already active on a cart.
    """
