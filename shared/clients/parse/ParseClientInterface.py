from abc import abstractmethod

import httpx
from shared.clients.ClientErrors import ClientError
from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperAsync import poll_until
from shared.helper.HelperConfig import HelperConfig


class ParseClientInterface(ClientInterface):
    """Turns binary uploads (PDF, DOCX, ...) into markdown through an asynchronous parsing job."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.poll_interval = float(helper_config.get_number_val(f"{self.get_client_type().upper()}_POLL_INTERVAL", default=2.0))
        self.poll_max_attempts = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_POLL_MAX_ATTEMPTS", default=30))
        self.language = helper_config.get_string_val(f"{self.get_client_type().upper()}_LANGUAGE", default="pt")
        self.min_chars = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MIN_CHARS", default=50))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "parse"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upload(self) -> str:
        """Returns the endpoint path that accepts a file and starts a parsing job."""
        pass

    @abstractmethod
    def _get_endpoint_result(self, job_id: str) -> str:
        """Returns the endpoint path of a job's markdown result."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_upload_form(self) -> dict:
        """Returns the form fields sent along with the uploaded file."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_job_id(self, response_data: dict) -> str:
        """Extracts the job id from the upload response."""
        pass

    @abstractmethod
    def extract_markdown(self, response_data: dict) -> str:
        """Extracts the markdown text from a finished job's result."""
        pass

    def is_pending_response(self, response: httpx.Response) -> bool:
        """Tells whether a non-2xx result response only means "not finished yet"."""
        return response.status_code not in (401, 403)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_upload(self, filename: str, content: bytes, content_type: str = "application/pdf") -> str:
        """Upload a file and return the parsing job id."""
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_upload(),
            files={"file": (filename, content, content_type)},
            data=self.get_upload_form(),
            raise_on_error=True,
        )
        job_id = self.extract_job_id(response.json())
        self.logging.info("Parsing job %s started for '%s' (%d bytes).", job_id, filename, len(content))
        return job_id

    async def do_fetch_result(self, job_id: str) -> str | None:
        """Fetch a job's markdown, or None while the job is still running."""
        response = await self.do_request(method="GET", endpoint=self._get_endpoint_result(job_id))
        if response.is_success:
            return self.extract_markdown(response.json())
        if self.is_pending_response(response):
            return None
        self.raise_for_response(response)

    async def do_parse(self, filename: str, content: bytes, content_type: str = "application/pdf") -> str:
        """Upload a file and wait for its markdown.

        Returns:
            str: The extracted markdown.

        Raises:
            PollTimeoutError: If the job does not finish within the attempt budget.
            ClientError: If the extracted text is shorter than the configured minimum.
        """
        job_id = await self.do_upload(filename, content, content_type)
        markdown = await poll_until(
            lambda: self.do_fetch_result(job_id),
            interval=self.poll_interval,
            max_attempts=self.poll_max_attempts,
            description=f"parsing job {job_id}",
            logger=self.logging,
        )
        if len(markdown.strip()) < self.min_chars:
            raise ClientError(f"Parsing job {job_id} produced only {len(markdown.strip())} characters of text.")
        self.logging.info("Parsing job %s finished: %d characters extracted.", job_id, len(markdown))
        return markdown
