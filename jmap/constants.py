"""
JMAP capability URIs and well-known protocol constants (RFC 8620).

All capability strings are defined here so they are never duplicated
across the package. Every other module should import from this file.
"""

#: Core JMAP capability, required by every method.
CORE_CAPABILITY = "urn:ietf:params:jmap:core"

#: RFC 8621 JMAP Mail capability.
MAIL_CAPABILITY = "urn:ietf:params:jmap:mail"

#: RFC 8621 JMAP e-mail submission capability.
SUBMISSION_CAPABILITY = "urn:ietf:params:jmap:submission"

#: Path of the session resource (RFC 8620 §2.2).
WELL_KNOWN_PATH = "/.well-known/jmap"

#: Service name used for DNS SRV lookups (``_jmap._tcp.<domain>``).
SRV_SERVICE = "jmap"

#: Prefix shared by all request-level error type URIs.
REQUEST_ERROR_PREFIX = "urn:ietf:params:jmap:error:"

#: Invocation name used by the server for method-level errors.
ERROR_METHOD_NAME = "error"
