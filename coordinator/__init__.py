"""
Account Coordinator System

Проход по всем аккаунтам из хранилища токенов и замена мёртвых токенов.
"""

from .account_coordinator import AccountCoordinator, handle_for_slot, populate_store

__all__ = ['AccountCoordinator', 'handle_for_slot', 'populate_store']
