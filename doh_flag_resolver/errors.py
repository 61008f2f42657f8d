"""
Resolution error taxonomy
Every failure a single resolve() call can report to its caller
"""


class ResolutionError(Exception):
    """Base class for failures recovered at the Resolver boundary"""

    kind = "resolution_error"

    def __init__(self, hostname: str, message: str = "", url: str | None = None):
        self.hostname = hostname
        self.url = url
        super().__init__(message or f"{self.kind} for {hostname}")


class RequestFailed(ResolutionError):
    """Transport error, non-2xx status or undecodable JSON body"""

    kind = "request_failed"


class NoAnswerSection(ResolutionError):
    """DoH response carried no Answer list"""

    kind = "no_answer_section"


class NoARecord(ResolutionError):
    """Answer list present but without any type 1 entry"""

    kind = "no_a_record"


class EnrichmentFailed(ResolutionError):
    """IP resolved but no usable country code could be attached"""

    kind = "enrichment_failed"

    def __init__(self, hostname: str, message: str = "", ip: str | None = None):
        self.ip = ip
        super().__init__(hostname, message)


class ProviderUnavailable(ResolutionError):
    """No provider yielded a token within the race timeout or round limit"""

    kind = "provider_unavailable"


class InvalidHostname(ResolutionError):
    kind = "invalid_hostname"
