"""Step navigation: frequency, offers, checkout and going back."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from subscriptions.box.box import BuilderStep, SubscriptionBox
from subscriptions.box.flow import current_flow
from subscriptions.domain import subscriptions


@subscriptions.command(part_of="SubscriptionBox")
class ProceedToFrequency:
    """Leave product selection once enough products are in the box."""

    box_id = Identifier(required=True)


@subscriptions.command(part_of="SubscriptionBox")
class ChooseFrequency:
    box_id = Identifier(required=True)
    frequency = String(required=True, max_length=20)


@subscriptions.command(part_of="SubscriptionBox")
class ProceedToOffers:
    """Leave frequency selection; submits straight away when the shop has no offers."""

    box_id = Identifier(required=True)
    customer_email = String(max_length=254)


@subscriptions.command(part_of="SubscriptionBox")
class ToggleOffer:
    box_id = Identifier(required=True)
    offer_id = Identifier(required=True)


@subscriptions.command(part_of="SubscriptionBox")
class CheckoutBox:
    """Write the box to the cart, with the toggled offers or, when skipping, without any."""

    box_id = Identifier(required=True)
    skip_offers = Boolean(default=False)
    customer_email = String(max_length=254)


@subscriptions.command(part_of="SubscriptionBox")
class ReturnToStep:
    box_id = Identifier(required=True)
    step = String(required=True, choices=BuilderStep)


def _result_dict(result):
    if result is None:
        return None
    return {
        "success": result.success,
        "cart_token": result.cart_token,
        "redirect_url": result.redirect_url,
        "failure_reason": result.failure_reason,
    }


@subscriptions.command_handler(part_of=SubscriptionBox)
class BoxNavigationHandler:
    @handle(ProceedToFrequency)
    def proceed_to_frequency(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        box.proceed_to_frequency()
        repo.add(box)

    @handle(ChooseFrequency)
    def choose_frequency(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        box.choose_frequency(command.frequency)
        repo.add(box)

    @handle(ProceedToOffers)
    def proceed_to_offers(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        result = current_flow(box).proceed_to_offers(box, customer_email=command.customer_email)
        repo.add(box)
        return _result_dict(result)

    @handle(ToggleOffer)
    def toggle_offer(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        selected = box.toggle_offer(command.offer_id)
        repo.add(box)
        return selected

    @handle(CheckoutBox)
    def checkout_box(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        result = current_flow(box).submit(
            box,
            skip_offers=command.skip_offers,
            customer_email=command.customer_email,
        )
        repo.add(box)
        return _result_dict(result)

    @handle(ReturnToStep)
    def return_to_step(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        current_flow(box).go_back(box, command.step)
        repo.add(box)
