"""Планирование встреч и деление расходов для небольших компаний."""

__version__ = "0.1.0"
