"""Running a method in a unit of work of its own."""

import contextvars
import functools

from protean.utils.globals import current_domain


def own_transaction(method):
    """Run ``method`` in a fresh context holding only the current domain context.

    A ``UnitOfWork`` opened while another is active joins the outer one and
    commits only when that one does, e.g. after a command handler returns.
    Inside the fresh context no unit of work is active, so one opened by
    ``method`` commits before ``method`` returns, while its locks are held.
    """

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        domain = current_domain._get_current_object()

        def run():
            with domain.domain_context():
                return method(*args, **kwargs)

        return contextvars.Context().run(run)

    return wrapper
