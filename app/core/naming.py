import re

MAX_NAME_LENGTH = 63

_INVALID_CHARS = re.compile(r"[^a-z0-9-]")
_DNS_LABEL = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


def derive_name(raw_name: str) -> str:
    """Dérive un nom canonique utilisable pour les objets Kubernetes.

    Le résultat peut être vide : c'est à l'appelant de le refuser.
    """
    name = (raw_name or "").lower()
    name = name.replace("_", "-").replace(" ", "-")
    name = _INVALID_CHARS.sub("", name)
    name = name.strip("-")
    # la troncature peut laisser un tiret final
    return name[:MAX_NAME_LENGTH].rstrip("-")


def is_dns_label(value: str) -> bool:
    """Nom de namespace valide (RFC 1123, 63 caractères au plus)"""
    return bool(value) and len(value) <= MAX_NAME_LENGTH and _DNS_LABEL.match(value) is not None


def config_map_name(name: str) -> str:
    return f"{name}-config"


def service_name(name: str) -> str:
    return f"{name}-service"


def ingress_name(name: str) -> str:
    return f"{name}-ingress"


def label_value(value: str) -> str:
    """Valeur de label Kubernetes (ex: owner/repo -> owner-repo)"""
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", value or "")
    return cleaned[:MAX_NAME_LENGTH].strip("-._")
