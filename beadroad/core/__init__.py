"""Core primitives: records, rules, the bounded window, grid projection."""
