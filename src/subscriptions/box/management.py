"""Box management: starting a box, loading its catalog, browsing categories."""

import json

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from subscriptions.box.box import SubscriptionBox
from subscriptions.box.flow import current_flow
from subscriptions.box.milestones import MilestoneConfig, fetch_milestone_config
from subscriptions.domain import subscriptions
from subscriptions.storefront import get_storefront


@subscriptions.command(part_of="SubscriptionBox")
class StartBox:
    """Start a new subscription box for a shopper session."""

    session_id = String(max_length=255)
    shop = String(max_length=255)
    milestone_config = Text()  # JSON: admin milestone snapshot; fetched from the app proxy when absent
    message_overrides = Text()  # JSON: message key -> text


@subscriptions.command(part_of="SubscriptionBox")
class LoadCatalog:
    """Load (or, after a failure, retry loading) the eligible catalog."""

    box_id = Identifier(required=True)
    force = Boolean(default=False)


@subscriptions.command(part_of="SubscriptionBox")
class ShowCategory:
    """Switch the category on display."""

    box_id = Identifier(required=True)
    category = String(required=True, max_length=255)


def _json(value):
    return json.loads(value) if isinstance(value, str) and value else value


@subscriptions.command_handler(part_of=SubscriptionBox)
class ManageBoxHandler:
    @handle(StartBox)
    def start_box(self, command):
        snapshot = _json(command.milestone_config)
        if snapshot:
            milestones = MilestoneConfig.from_payload(snapshot)
        else:
            milestones = fetch_milestone_config(get_storefront(command.session_id), command.shop)

        box = SubscriptionBox.create(
            session_id=command.session_id,
            shop=command.shop,
            milestones=milestones,
            message_overrides=_json(command.message_overrides),
        )
        current_domain.repository_for(SubscriptionBox).add(box)
        return str(box.id)

    @handle(LoadCatalog)
    def load_catalog(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        status = current_flow(box).load_catalog(box, force=command.force)
        repo.add(box)
        return status

    @handle(ShowCategory)
    def show_category(self, command):
        repo = current_domain.repository_for(SubscriptionBox)
        box = repo.get(command.box_id)
        box.show_category(command.category)
        repo.add(box)
