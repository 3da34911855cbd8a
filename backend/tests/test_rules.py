from __future__ import annotations

import pytest

from fanchat.core.errors import NotFoundError, PermissionDenied, ValidationError
from fanchat.models import RuleSeverity
from fanchat.services.rules import DEFAULT_RULES


def test_default_rules_are_seeded_once(services, world):
    rules = services.rules.rules_for(world.group.id)

    assert [rule.title for rule in rules] == [template["title"] for template in DEFAULT_RULES]
    assert rules[0].severity == RuleSeverity.SERIOUS
    assert rules[2].icon == "exclamationmark.triangle.fill"
    assert [rule.id for rule in services.rules.rules_for(world.group.id)] == [rule.id for rule in rules]
    # seeding is not an edit
    assert services.rules.version(world.group.id) == 1


def test_unknown_group(services):
    with pytest.raises(NotFoundError):
        services.rules.rules_for(404)


def test_add_rule_appends_and_bumps_version(services, world):
    rule = services.rules.add_rule(
        world.group.id,
        world.admin.id,
        " No Spoilers ",
        "Keep new setlists out of the general chat.",
        icon="eye.slash",
        severity=RuleSeverity.WARNING,
    )

    rules = services.rules.rules_for(world.group.id)
    assert rules[-1].id == rule.id
    assert rule.title == "No Spoilers"
    assert rule.position == len(DEFAULT_RULES)
    assert services.rules.version(world.group.id) == 2


def test_only_group_admins_edit_rules(services, world):
    with pytest.raises(PermissionDenied):
        services.rules.add_rule(world.group.id, world.moderator.id, "Title", "Body")
    with pytest.raises(ValidationError):
        services.rules.add_rule(world.group.id, world.admin.id, "Title", "  ")

    rule = services.rules.rules_for(world.group.id)[0]
    with pytest.raises(PermissionDenied):
        services.rules.remove_rule(world.group.id, world.fan_a.id, rule.id)


def test_remove_rule(services, world):
    rules = services.rules.rules_for(world.group.id)

    services.rules.remove_rule(world.group.id, world.main_admin.id, rules[1].id)

    assert [rule.id for rule in services.rules.rules_for(world.group.id)] == [
        rule.id for rule in rules if rule.id != rules[1].id
    ]
    assert services.rules.version(world.group.id) == 2
    with pytest.raises(NotFoundError):
        services.rules.remove_rule(world.group.id, world.admin.id, rules[1].id)


def test_acceptance_is_tied_to_rules_version(services, world, clock):
    assert not services.rules.has_accepted(world.group.id, world.fan_a.id)

    acceptance = services.rules.accept(world.group.id, world.fan_a.id)
    assert acceptance.rules_version == 1
    assert acceptance.accepted_at == clock.now()
    assert services.rules.has_accepted(world.group.id, world.fan_a.id)

    services.rules.add_rule(world.group.id, world.admin.id, "Be kind to newcomers", "Everyone starts somewhere.")
    assert not services.rules.has_accepted(world.group.id, world.fan_a.id)

    clock.advance(days=1)
    again = services.rules.accept(world.group.id, world.fan_a.id)
    assert again.id == acceptance.id
    assert again.rules_version == 2
    assert services.rules.has_accepted(world.group.id, world.fan_a.id)


def test_only_members_accept_rules(services, world):
    with pytest.raises(PermissionDenied):
        services.rules.accept(world.group.id, world.outsider.id)
