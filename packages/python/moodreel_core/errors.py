class DomainError(Exception):
    code: str = "domain_error"
    status: int = 400

    def __init__(self, message: str = "", *, code: str | None = None, status: int | None = None):
        super().__init__(message or self.__class__.__name__)
        if code: self.code = code
        if status: self.status = status

class NotFound(DomainError):
    code = "not_found"
    status = 404

class Conflict(DomainError):
    code = "conflict"
    status = 409

class Forbidden(DomainError):
    code = "forbidden"
    status = 403

# completion service unreachable or returned something we can't parse
class AnalysisUnavailable(DomainError):
    code = "analysis_unavailable"
    status = 503

class CompletionError(DomainError):
    code = "completion_error"
    status = 502

class CandidateDiscoveryFailed(DomainError):
    code = "candidate_discovery_failed"
    status = 502

class CatalogUnavailable(DomainError):
    code = "catalog_unavailable"
    status = 502

class TitleNotFound(NotFound):
    code = "title_not_found"

class QuotaExceeded(DomainError):
    code = "quota_exceeded"
    status = 429
