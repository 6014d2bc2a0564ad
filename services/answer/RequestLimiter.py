from datetime import datetime, timedelta, timezone
from typing import Callable

from shared.clients.ClientErrors import ClientError
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.answer import RequestLogEntry
from shared.models.config import AnswerSettings

WINDOW = timedelta(hours=1)
LOGGED_QUERY_CHARS = 200
ANONYMOUS_USER = "anonymous"


class RequestLimitExceededError(Exception):
    """A user asked more questions in the last hour than allowed."""

    def __init__(self, user_id: str, limit: int):
        self.user_id = user_id
        self.limit = limit
        super().__init__(f"User '{user_id}' reached the limit of {limit} questions per hour.")


class RequestLimiter:
    """Per-user hourly question limit, backed by the document store's request log.

    A store that cannot be read or written does not block the question; the
    failure is logged and the request goes through.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        settings: AnswerSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = document_store
        self._limit = (settings or AnswerSettings.from_config(helper_config)).max_requests_per_hour
        self._now = clock or (lambda: datetime.now(timezone.utc))

    @staticmethod
    def identify(user_id: str | None, user_name: str | None) -> str:
        return (user_id or "").strip() or (user_name or "").strip() or ANONYMOUS_USER

    async def check_and_record(self, user_id: str, tenant_id: str, query: str) -> int:
        """Reject the question if the user is over the limit, otherwise log it.

        Returns:
            int: Questions of the user in the current window, this one included
                (0 when the limit is disabled).

        Raises:
            RequestLimitExceededError: If the user already asked the maximum
                number of questions in the last hour.
        """
        if self._limit <= 0:
            return 0
        now = self._now()
        try:
            asked = await self._store.do_count_requests(user_id, since=now - WINDOW)
        except ClientError as e:
            self.logging.warning("Could not read the request log for user '%s', not limiting: %s", user_id, e)
            asked = 0
        if asked >= self._limit:
            self.logging.warning("Request limit reached for user '%s' (%d/%d in the last hour).", user_id, asked, self._limit)
            raise RequestLimitExceededError(user_id, self._limit)

        entry = RequestLogEntry(user_id=user_id, tenant_id=tenant_id, query=query[:LOGGED_QUERY_CHARS], created_at=now)
        try:
            await self._store.do_log_request(entry)
        except ClientError as e:
            self.logging.warning("Could not record the request of user '%s': %s", user_id, e)
        self.logging.debug("User '%s' within limit: %d/%d this hour.", user_id, asked + 1, self._limit)
        return asked + 1
