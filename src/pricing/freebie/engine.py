"""Freebie rule evaluation, conflict detection and validation.

The cart materializes freebie items itself; this engine answers the questions
around it: would a rule fire on a given cart, does a new rule clash with the
rules already active, and what are the active freebies worth.
"""

from dataclasses import dataclass

from protean.exceptions import ValidationError

from pricing.freebie.rule import FreebieRule
from pricing.shared.money import Money

MAX_FREEBIE_QUANTITY_HINT = 100


@dataclass(frozen=True)
class ActiveFreebie:
    item: object
    trigger_product: str
    rule_name: str
    savings: Money


@dataclass(frozen=True)
class FreebieRuleInfo:
    name: str
    trigger_product: str
    freebie_product: str
    freebie_quantity: int
    description: str


class FreebieEngine:
    """Stateless helper over carts and freebie rules."""

    def can_apply(self, cart, rule: FreebieRule) -> bool:
        """True when ``rule`` would produce a freebie item on ``cart`` as it stands."""
        regular = {str(item.product_id) for item in cart.regular_items()}
        return str(rule.trigger_product) in regular and str(rule.freebie_product) not in regular

    def applicable_rules(self, cart, rules: list[FreebieRule]) -> list[FreebieRule]:
        return [rule for rule in rules if self.can_apply(cart, rule)]

    def find_conflicts(self, existing_rules: list[FreebieRule], new_rule: FreebieRule) -> list[str]:
        conflicts = []

        for rule in existing_rules:
            if rule.name == new_rule.name:
                conflicts.append(f"Rule with name '{new_rule.name}' already exists")

            if rule.trigger_product == new_rule.trigger_product and rule.freebie_product == new_rule.freebie_product:
                conflicts.append(
                    f"Rule '{rule.name}' already gives {rule.freebie_product} for buying {rule.trigger_product}"
                )

            if rule.is_inverse_of(new_rule):
                conflicts.append(
                    f"Circular dependency: rule '{rule.name}' gives {rule.freebie_product} "
                    f"for {rule.trigger_product}, new rule gives {new_rule.freebie_product} "
                    f"for {new_rule.trigger_product}"
                )

        return conflicts

    def active_freebies(self, cart) -> list[ActiveFreebie]:
        rules = cart.freebie_rules()
        active = []

        for item in cart.freebie_items():
            # The last matching rule is the one that produced the item
            rule = next(
                (
                    r
                    for r in reversed(rules)
                    if r.trigger_product == item.freebie_source and r.freebie_product == item.product_id
                ),
                None,
            )
            active.append(
                ActiveFreebie(
                    item=item,
                    trigger_product=str(item.freebie_source),
                    rule_name=rule.name if rule is not None else "",
                    savings=item.line_total_with_freebies(),
                )
            )

        return active

    def total_savings(self, cart) -> Money:
        savings = [freebie.savings for freebie in self.active_freebies(cart)]
        if not savings:
            return Money.zero(cart.currency())
        return Money.sum(savings)

    def validate(self, rule: FreebieRule) -> list[str]:
        errors = []

        if rule.trigger_product == rule.freebie_product:
            errors.append("Trigger product and freebie product cannot be the same")

        if not rule.freebie_quantity.is_positive():
            errors.append("Freebie quantity must be positive")

        if rule.freebie_quantity.value > MAX_FREEBIE_QUANTITY_HINT:
            errors.append("Freebie quantity seems unreasonably large")

        if not rule.name or not rule.name.strip():
            errors.append("Rule name cannot be empty")

        return errors

    def create_rule(self, name, trigger_product, freebie_product, freebie_quantity=1) -> FreebieRule:
        """Build a rule and refuse it when ``validate`` has objections."""
        rule = FreebieRule.create(name, trigger_product, freebie_product, freebie_quantity)

        errors = self.validate(rule)
        if errors:
            raise ValidationError({"freebie_rule": errors})

        return rule

    def describe(self, rule: FreebieRule) -> FreebieRuleInfo:
        return FreebieRuleInfo(
            name=rule.name,
            trigger_product=str(rule.trigger_product),
            freebie_product=str(rule.freebie_product),
            freebie_quantity=rule.freebie_quantity.value,
            description=str(rule),
        )
