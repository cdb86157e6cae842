"""Helpers for the sample application."""


def greeting(name: str) -> str:
    return f"Hello, {name}!"
