"""
Validation and sanitization for the contact and newsletter forms.

Everything here is a pure function. Form problems come back as data in a
ValidationResult, never as exceptions, because a single submission can have
several independent problems to show at once.
"""
import html
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Union

CONTACT = "contact"
NEWSLETTER = "newsletter"

MIN_MESSAGE_LENGTH = 10

# Throwaway-address providers; leads from these are rejected
DISPOSABLE_DOMAINS = frozenset({
    "tempmail.com",
    "guerrillamail.com",
    "mailinator.com",
    "10minutemail.com",
    "throwaway.email",
    "temp-mail.org",
    "fakeinbox.com",
    "trashmail.com",
    "sharklasers.com",
    "getnada.com",
})

ERROR_NAME_REQUIRED = "Name is required"
ERROR_EMAIL_REQUIRED = "Email is required"
ERROR_EMAIL_DISPOSABLE = "Please use a non-disposable email address"
ERROR_EMAIL_INVALID = "Please enter a valid email address"
ERROR_MESSAGE_REQUIRED = "Message is required"
ERROR_MESSAGE_TOO_SHORT = f"Message must be at least {MIN_MESSAGE_LENGTH} characters"

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
TAG_PATTERN = re.compile(r"<[^>]*>")


@dataclass
class ContactForm:
    name: Any = None
    email: Any = None
    message: Any = None
    honeypot: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ContactForm":
        return cls(
            name=data.get("name"),
            email=data.get("email"),
            message=data.get("message"),
            honeypot=_honeypot_from(data),
        )


@dataclass
class NewsletterForm:
    email: Any = None
    honeypot: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NewsletterForm":
        return cls(email=data.get("email"), honeypot=_honeypot_from(data))


FormData = Union[ContactForm, NewsletterForm, Mapping[str, Any]]


def _honeypot_from(data: Mapping[str, Any]) -> Any:
    # The storefront markup names the hidden field "bot-field"
    value = data.get("honeypot")
    return value if value is not None else data.get("bot-field")


@dataclass
class ValidationResult:
    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    is_bot: bool = False
    sanitized: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def bot(cls) -> "ValidationResult":
        """Rejection with no diagnostics, so bots get nothing to tune against."""
        return cls(is_valid=False, errors={}, is_bot=True, sanitized={})

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": dict(self.errors),
            "is_bot": self.is_bot,
            "sanitized": dict(self.sanitized),
        }


def _domain_of(email: str) -> str:
    return email.rpartition("@")[2].lower()


def _denylist(disposable_domains: Optional[Iterable[str]]) -> frozenset:
    if disposable_domains is None:
        return DISPOSABLE_DOMAINS
    return frozenset(domain.lower() for domain in disposable_domains)


def is_disposable_email(email: Any, disposable_domains: Optional[Iterable[str]] = None) -> bool:
    if not isinstance(email, str) or "@" not in email:
        return False
    return _domain_of(email) in _denylist(disposable_domains)


def validate_email(email: Any, disposable_domains: Optional[Iterable[str]] = None) -> bool:
    """
    Check that `email` looks like local@domain.tld and is not from a
    disposable provider.
    """
    if not email or not isinstance(email, str):
        return False
    if not EMAIL_PATTERN.fullmatch(email):
        return False
    return not is_disposable_email(email, disposable_domains)


def validate_required(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return len(value.strip()) > 0


def sanitize_input(value: Any) -> str:
    """
    Make user input safe to drop into HTML.

    Tag-like substrings are removed first and the remainder is entity
    escaped, so entities already present in the input are escaped rather
    than read as markup.
    """
    if value is None:
        return ""
    text = TAG_PATTERN.sub("", str(value))
    return html.escape(text, quote=True).strip()


def _is_bot(honeypot: Any) -> bool:
    if honeypot is None:
        return False
    return str(honeypot).strip() != ""


def _check_email(email: Any, disposable_domains, errors: Dict[str, str],
                 sanitized: Dict[str, str]) -> None:
    if not validate_required(email):
        errors["email"] = ERROR_EMAIL_REQUIRED
    elif is_disposable_email(email, disposable_domains):
        errors["email"] = ERROR_EMAIL_DISPOSABLE
    elif not validate_email(email, disposable_domains):
        errors["email"] = ERROR_EMAIL_INVALID
    else:
        sanitized["email"] = sanitize_input(email)


def _validate_newsletter(form: NewsletterForm, disposable_domains) -> ValidationResult:
    errors: Dict[str, str] = {}
    sanitized: Dict[str, str] = {}
    _check_email(form.email, disposable_domains, errors, sanitized)
    return ValidationResult(is_valid=not errors, errors=errors, sanitized=sanitized)


def _validate_contact(form: ContactForm, disposable_domains) -> ValidationResult:
    errors: Dict[str, str] = {}
    sanitized: Dict[str, str] = {}

    if not validate_required(form.name):
        errors["name"] = ERROR_NAME_REQUIRED
    else:
        sanitized["name"] = sanitize_input(form.name)

    _check_email(form.email, disposable_domains, errors, sanitized)

    if not validate_required(form.message):
        errors["message"] = ERROR_MESSAGE_REQUIRED
    elif len(form.message.strip()) < MIN_MESSAGE_LENGTH:
        errors["message"] = ERROR_MESSAGE_TOO_SHORT
    else:
        sanitized["message"] = sanitize_input(form.message)

    return ValidationResult(is_valid=not errors, errors=errors, sanitized=sanitized)


def _coerce_form(form_data: FormData, form_type: str) -> Union[ContactForm, NewsletterForm]:
    if isinstance(form_data, (ContactForm, NewsletterForm)):
        return form_data
    if form_type == NEWSLETTER:
        return NewsletterForm.from_mapping(form_data)
    if form_type == CONTACT:
        return ContactForm.from_mapping(form_data)
    raise ValueError(f"Unknown form type: {form_type!r}")


def validate_form(form_data: FormData, form_type: str = CONTACT,
                  disposable_domains: Optional[Iterable[str]] = None) -> ValidationResult:
    """
    Validate a contact or newsletter submission.

    A ContactForm or NewsletterForm picks its own rules; a plain mapping is
    validated according to `form_type`. A filled-in honeypot short-circuits
    everything and returns ValidationResult.bot().

    Contact fields are checked independently, so one bad field does not hide
    problems in the others.
    """
    form = _coerce_form(form_data, form_type)

    if _is_bot(form.honeypot):
        return ValidationResult.bot()

    if isinstance(form, NewsletterForm):
        return _validate_newsletter(form, disposable_domains)
    return _validate_contact(form, disposable_domains)
