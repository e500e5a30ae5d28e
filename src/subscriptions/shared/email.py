"""EmailAddress value object for the optional customer email on a box."""

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import String

from subscriptions.domain import subscriptions

_FORBIDDEN_CHARACTERS = (";", ",", "(", ")", '"', ":", "<", ">", "\\")


def _is_literal_domain(domain_part: str) -> bool:
    return domain_part.startswith("[") and domain_part.endswith("]")


def is_valid_address(email: str) -> bool:
    """Structural check: one @, non-empty dotted parts, no whitespace or forbidden characters."""
    if not email or any(ch in email for ch in " \t\n"):
        return False
    if email.count("@") != 1:
        return False

    local_part, domain_part = email.split("@", 1)
    for part in (local_part, domain_part):
        if not part or part.startswith(".") or part.endswith(".") or ".." in part:
            return False

    if _is_literal_domain(domain_part):
        return not any(ch in email for ch in _FORBIDDEN_CHARACTERS)

    if "." not in domain_part or "[" in email or "]" in email:
        return False
    if any(label.startswith("-") or label.endswith("-") for label in domain_part.split(".")):
        return False
    return not any(ch in email for ch in _FORBIDDEN_CHARACTERS)


@subscriptions.value_object
class EmailAddress:
    """A structurally valid email address."""

    address = String(required=True, max_length=254)

    @invariant.post
    def address_must_be_well_formed(self):
        if not is_valid_address(self.address):
            raise ValidationError({"customer_email": [f"Invalid email address: {self.address!r}"]})
