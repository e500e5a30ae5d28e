"""Product selection: toggling products and choosing variants."""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from subscriptions.box.box import SubscriptionBox
from subscriptions.domain import subscriptions


@subscriptions.command(part_of="SubscriptionBox")
class ToggleProduct:
    """Add a product to the box, or take it out if already there."""

    box_id = Identifier(required=True)
    product_id = Identifier(required=True)


@subscriptions.command(part_of="SubscriptionBox")
class ChooseVariant:
    """Choose which variant of a product goes into the box."""

    box_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)


@subscriptions.command_handler(part_of=SubscriptionBox)
class ProductSelectionHandler:
    @handle(ToggleProduct)
    def toggle_product(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        selected = box.toggle_product(command.product_id)
        repo.add(box)
        return selected

    @handle(ChooseVariant)
    def choose_variant(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        notice = box.choose_variant(command.product_id, command.variant_id)
        repo.add(box)
        return notice.to_dict() if notice else None
