"""Error taxonomy for claim authorization.

Every error carries a stable `code` (used in API responses and logs) and the
HTTP status the web layer maps it to.
"""


class BookClaimError(Exception):
    code = 'error'
    status = 400

    def to_dict(self):
        return {'error': self.code, 'detail': str(self)}


class Unauthorized(BookClaimError):
    code = 'unauthorized'
    status = 403


class NoRootConfigured(BookClaimError):
    code = 'no-root'
    status = 404


class InvalidProof(BookClaimError):
    code = 'invalid-proof'
    status = 400


class AlreadyClaimed(BookClaimError):
    code = 'already-claimed'
    status = 409


class MintFailed(BookClaimError):
    code = 'mint-failed'
    status = 502


class InvalidIdentity(BookClaimError, ValueError):
    code = 'invalid-identity'
    status = 400


class EmptyAllowlist(ValueError):
    pass
