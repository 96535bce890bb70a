"""
api/deps.py -- Request-scoped service wiring.

AccountService is built per request so its dispatch hook can be the
request's BackgroundTasks: notification emails run after the response has
been sent, and their failure cannot turn a committed change into a 500.
"""

from fastapi import BackgroundTasks, Request

from auth.lifecycle import AccountService


def get_account_service(request: Request, background_tasks: BackgroundTasks) -> AccountService:
    return AccountService(
        request.app.state.account_store,
        request.app.state.notifier,
        dispatch=background_tasks.add_task,
    )
