import re

# Kirguistán: +996 seguido de 9 dígitos
# Operadores: Beeline (+996770-779, +996220-229), MegaCom (+996550-559),
# O! (+996500-509), NurTelecom (+996990-999)
REGIONAL_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"\+996[57][0-9]{8}",  # móviles principales
        r"\+9962[0-9]{8}",     # fijos de Bishkek
        r"\+996[0-9]{9}",      # formato general
    )
)


def is_valid_regional_phone(phone) -> bool:
    if not isinstance(phone, str):
        return False
    return any(p.fullmatch(phone) for p in REGIONAL_PATTERNS)
