"""Cooldown checks, risk signals, owner cache and vulnerability audit."""
