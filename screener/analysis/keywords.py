"""Keyword and phrase definitions for transcript classification.

This module holds the default vocabulary every text classifier scores
against. Lists are plain configuration data: classifiers take KeywordSet
objects at construction, so entries can be replaced or extended without
touching any scoring constant.

Keywords are matched as lowercase substrings of the lowercased transcript.
Default sets cover English and Spanish.
"""

from dataclasses import dataclass
from typing import Iterable

from .evidence import EmergencyType, SpamCategory


@dataclass(frozen=True)
class KeywordSet:
    """A named group of keywords scored together."""
    name: str
    keywords: tuple[str, ...]
    weight: float = 0.0  # Score added per matched keyword
    cap: float = 1.0  # Maximum score this set can contribute
    min_matches: int = 1  # Matches required before the set scores at all

    def __post_init__(self):
        seen = []
        for keyword in self.keywords:
            if not isinstance(keyword, str):
                raise TypeError(f"Keyword set '{self.name}' has non-string entry: {keyword!r}")
            keyword = keyword.strip().lower()
            if keyword and keyword not in seen:
                seen.append(keyword)
        object.__setattr__(self, "keywords", tuple(seen))

    def matches(self, text: str) -> list[str]:
        """Return keywords found in lowercased text, in declaration order."""
        return [k for k in self.keywords if k in text]

    def score(self, text: str) -> tuple[float, list[str]]:
        """
        Score lowercased text against this set.

        Returns:
            Tuple of (score, matched keywords). Score is 0.0 when fewer
            than min_matches keywords are present.
        """
        found = self.matches(text)
        if len(found) < self.min_matches:
            return 0.0, found
        return min(len(found) * self.weight, self.cap), found

    def extended(self, extra: Iterable[str]) -> "KeywordSet":
        """Return a copy with user-supplied keywords appended."""
        return KeywordSet(
            name=self.name,
            keywords=self.keywords + tuple(extra),
            weight=self.weight,
            cap=self.cap,
            min_matches=self.min_matches,
        )


def _words(*groups: Iterable[str]) -> tuple[str, ...]:
    merged: list[str] = []
    for group in groups:
        merged.extend(group)
    return tuple(merged)


# =============================================================================
# Robot / IVR
# =============================================================================

IVR_PATTERNS = (
    r"\b(press|dial|pulse)\b.*\d+",
    r"\bfor\b.*\bpress\b",
    r"\boption\s+(\d+|one|two|three|four|five|six|seven|eight|nine)\b",
    r"\bmain menu\b",
    r"\bselect an option\b",
    r"\bif you (would like|wish|want)\b.*\b(press|dial)\b",
    # Spanish
    r"\b(presione|marque|oprima)\b.*\d+",
    r"\bpara\b.*\b(pulse|presione)\b",
    r"\bmarcar\b.*\bopción\b",
    r"\bsi desea\b.*\bmarque\b",
    r"\bmenú principal\b",
    r"\bseleccione una opción\b",
    r"\bopción\s+\d+",
    r"\bpara\s+\w+\s+pulse\b",
)

AUTOMATED_PHRASES = KeywordSet("automated_phrases", _words(
    (
        "this is an automated message", "this is a recorded message",
        "automated system", "automated call", "please hold",
        "do not hang up", "stay on the line", "your call is important",
        "next available", "all of our agents are busy", "thank you for calling",
        "estimated wait time", "this call may be recorded",
        "quality assurance", "press star", "press pound",
    ),
    (
        "este es un mensaje automático", "mensaje grabado", "sistema automático",
        "llamada automática", "no cuelgue", "permanezca en línea",
        "su llamada es importante", "el siguiente operador disponible",
        "todos nuestros operadores están ocupados", "gracias por llamar a",
        "su tiempo de espera estimado", "está siendo grabada",
        "con fines de calidad", "pulse asterisco", "pulse almohadilla",
    ),
), weight=0.3, cap=0.6)

# Menu-only tokens. Conversational words ("hold", "transfer", "espera")
# would push short human openers over the density threshold.
ROBOT_KEYWORDS = KeywordSet("robot_keywords", _words(
    (
        "press", "option", "menu", "pound", "extension", "keypad",
    ),
    (
        "pulse", "presione", "marque", "oprima", "opción", "menú",
        "seleccione", "teclee", "digite", "asterisco", "almohadilla",
        "extensión",
    ),
))


# =============================================================================
# Emergency (priority order: medical > danger > family > work)
# =============================================================================

EMERGENCY_KEYWORDS = {
    EmergencyType.MEDICAL: KeywordSet("medical", _words(
        (
            "emergency", "urgent", "help me", "need help", "accident",
            "hospital", "ambulance", "injured", "bleeding", "heart attack",
            "stroke", "surgery", "unconscious", "fell down", "911",
        ),
        (
            "emergencia", "urgente", "urgencia", "necesito ayuda", "socorro",
            "auxilio", "accidente", "accidentado", "hospital", "clínica",
            "ambulancia", "herido", "herida", "lesionado", "grave",
            "operación", "cirugía", "infarto", "derrame", "caída", "golpe fuerte",
        ),
    ), weight=0.4, cap=1.0),
    EmergencyType.DANGER: KeywordSet("danger", _words(
        (
            "fire", "smoke", "robbery", "burglar", "thief", "police",
            "firefighters", "trapped", "kidnapped", "kidnapping", "threat", "danger",
        ),
        (
            "fuego", "incendio", "humo", "robo", "ladrón", "ladrones", "policía",
            "bomberos", "atrapado", "atrapada", "secuestro", "secuestrado",
            "amenaza", "peligro",
        ),
    ), weight=0.35, cap=0.9),
    EmergencyType.FAMILY: KeywordSet("family", _words(
        (
            "your mom", "your dad", "mother", "father", "your son", "daughter",
            "brother", "sister", "grandma", "grandpa", "grandmother",
            "grandfather", "husband", "your wife", "family",
        ),
        (
            "mamá", "madre", "papá", "padre", "hijo", "hija", "hermano",
            "hermana", "abuelo", "abuela", "esposo", "esposa", "marido", "familia",
        ),
    ), weight=0.25, cap=0.7),
    EmergencyType.WORK: KeywordSet("work", _words(
        (
            "urgent work", "urgent meeting", "your boss", "boss is calling",
            "you're fired", "important client", "work emergency", "office emergency",
        ),
        (
            "trabajo urgente", "reunión urgente", "jefe llamando", "despido",
            "despedir", "cliente importante", "emergencia laboral",
            "oficina urgente", "problema grave trabajo",
        ),
    ), weight=0.2, cap=0.6),
}


# =============================================================================
# Legitimacy
# =============================================================================

CONVERSATION_INDICATORS = KeywordSet("conversation", _words(
    (
        "hello", "good morning", "good afternoon", "good evening",
        "how are you", "can i speak to", "may i speak with", "this is",
        "my name is", "i'm calling because", "wanted to tell you",
        "need to talk to you", "it's important", "when you can",
    ),
    (
        "hola", "buenos días", "buenas tardes", "buenas noches", "cómo estás",
        "se encuentra", "puedo hablar con", "soy", "me llamo",
        "te llamo porque", "quería decirte", "necesito hablar contigo",
        "es importante", "cuando puedas",
    ),
), weight=0.3, cap=0.3, min_matches=2)

WORK_INDICATORS = KeywordSet("work", _words(
    (
        "meeting", "office", "project", "boss", "colleague", "coworker",
        "report", "presentation", "deadline", "shift",
    ),
    (
        "trabajo", "oficina", "reunión", "proyecto", "cliente", "jefe",
        "compañero", "empresa", "departamento", "informe", "presentación",
        "deadline", "entrega", "urgente trabajo",
    ),
), weight=0.25, cap=0.75)

OFFICIAL_ENTITIES = KeywordSet("official", _words(
    (
        "tax office", "internal revenue", "social security", "city hall",
        "court", "police", "sheriff", "hospital", "clinic", "health center",
        "doctor", "school", "university", "college",
    ),
    (
        "hacienda", "agencia tributaria", "seguridad social", "ayuntamiento",
        "juzgado", "policía", "guardia civil", "hospital", "ambulatorio",
        "centro de salud", "médico", "colegio", "instituto", "universidad",
        "secretaría",
    ),
), weight=0.2, cap=0.4)

DELIVERY_INDICATORS = KeywordSet("delivery", _words(
    (
        "package", "parcel", "delivery", "shipment", "your order", "courier",
        "fedex", "dhl", "usps", "amazon",
    ),
    (
        "paquete", "entrega", "envío", "pedido", "reparto", "correos", "seur",
        "mrw", "glovo", "just eat", "deliveroo",
    ),
), weight=0.25, cap=0.5)

BANK_VERIFICATION_INDICATORS = KeywordSet("bank_verification", _words(
    (
        "suspicious transaction", "unusual activity", "card has been blocked",
        "verify your identity", "atm withdrawal", "branch office",
    ),
    (
        "movimiento sospechoso", "actividad inusual", "bloqueo de tarjeta",
        "verificar identidad", "cajero automático", "sucursal",
    ),
), weight=0.3, cap=0.3)

MEDICAL_CONTEXT = KeywordSet("medical", _words(
    ("hospital", "doctor", "appointment", "consultation"),
    ("hospital", "médico", "cita", "consulta"),
), weight=0.3, cap=0.3)

SCHOOL_CONTEXT = KeywordSet("school", _words(
    ("school", "teacher", "your child", "class"),
    ("colegio", "profesor", "niño", "clase"),
), weight=0.25, cap=0.25)


# =============================================================================
# Spam
# =============================================================================

# Declaration order is the tie-break order between equally scored categories
SPAM_CATEGORY_KEYWORDS = {
    SpamCategory.TELEMARKETING: KeywordSet("telemarketing", _words(
        (
            "offer", "promotion", "discount", "free", "opportunity", "exclusive",
            "limited time", "savings", "best price", "don't miss",
            "take advantage", "today only", "last chance", "special deal",
        ),
        (
            "oferta", "promoción", "descuento", "gratis", "oportunidad",
            "exclusivo", "limitado", "ahorro", "mejor precio", "no te pierdas",
            "aprovecha", "solo hoy", "última oportunidad", "venta", "compra",
        ),
    ), weight=0.2),
    SpamCategory.SURVEYS: KeywordSet("surveys", _words(
        (
            "survey", "your opinion", "rate your", "satisfaction", "feedback",
            "few questions", "minutes of your time", "short survey", "questionnaire",
        ),
        (
            "encuesta", "opinión", "valoración", "satisfacción", "calificar",
            "experiencia", "puntuación", "preguntas", "responder",
            "minutos de su tiempo", "breve encuesta",
        ),
    ), weight=0.2),
    SpamCategory.SCAM: KeywordSet("scam", _words(
        (
            "prize", "winner", "sweepstakes", "lottery", "inheritance",
            "million dollars", "wire transfer", "you have been selected",
            "congratulations you won", "claim your prize", "gift card",
        ),
        (
            "premio", "ganador", "sorteo", "lotería", "herencia", "millones",
            "transferencia", "urgente responder", "has sido seleccionado",
            "felicidades has ganado", "reclamar premio",
        ),
    ), weight=0.2),
    SpamCategory.RELIGIOUS: KeywordSet("religious", _words(
        (
            "jehovah", "church", "salvation", "bible", "gospel", "christ",
            "prayer", "congregation", "ministry",
        ),
        (
            "testigos", "jehová", "iglesia", "dios", "salvación", "biblia",
            "evangelio", "cristo", "oración", "congregación", "ministro", "predicar",
        ),
    ), weight=0.2),
    SpamCategory.POLITICAL: KeywordSet("political", _words(
        (
            "vote", "election", "candidate", "campaign", "political",
            "government", "ballot",
        ),
        (
            "partido", "votar", "elecciones", "candidato", "campaña", "político",
            "gobierno", "votación", "afiliación",
        ),
    ), weight=0.2),
    SpamCategory.FINANCIAL: KeywordSet("financial", _words(
        (
            "loan", "credit", "debt", "refinance", "mortgage", "investment",
            "interest rate", "financing", "credit card", "low rate",
        ),
        (
            "préstamo", "crédito", "deuda", "refinanciar", "hipoteca", "inversión",
            "rentabilidad", "interés", "financiación", "tarjeta de crédito", "cuotas",
        ),
    ), weight=0.2),
    SpamCategory.INSURANCE: KeywordSet("insurance", _words(
        (
            "insurance", "policy", "coverage", "premium", "life insurance",
            "health insurance", "protection plan",
        ),
        (
            "seguro", "póliza", "cobertura", "asegurar", "prima", "siniestro",
            "indemnización", "seguro de vida", "seguro médico", "protección",
        ),
    ), weight=0.2),
    SpamCategory.ENERGY: KeywordSet("energy", _words(
        (
            "electricity", "electric bill", "gas bill", "energy bill",
            "energy savings", "utility", "power company", "solar panels", "kilowatt",
        ),
        (
            "luz", "electricidad", "factura energética", "ahorro energético",
            "tarifa", "compañía eléctrica", "endesa", "iberdrola", "naturgy",
            "consumo", "potencia contratada",
        ),
    ), weight=0.2),
    SpamCategory.TELECOM: KeywordSet("telecom", _words(
        (
            "fiber", "internet", "mobile plan", "cell phone plan", "data plan",
            "unlimited data", "gigabytes", "switch carriers", "verizon",
            "at&t", "t-mobile",
        ),
        (
            "fibra", "móvil", "megas", "gigas", "tarifa plana", "portabilidad",
            "permanencia", "movistar", "vodafone", "yoigo", "masmovil",
        ),
    ), weight=0.2),
}

GENERIC_SPAM_PHRASES = KeywordSet("generic_spam", _words(
    (
        "we are calling from", "the reason for my call", "won't take much of your time",
        "only take a few minutes", "would you be interested", "i have an offer",
        "we have selected", "as a valued customer", "sales department",
        "no obligation", "completely free", "at no cost", "commercial call",
        "improve your", "update your", "review your contract",
    ),
    (
        "le llamamos de", "el motivo de mi llamada", "no le voy a quitar mucho tiempo",
        "solo serán unos minutos", "le interesaría", "tengo una oferta",
        "hemos seleccionado", "como cliente preferente", "departamento comercial",
        "departamento de ventas", "información sin compromiso", "totalmente gratis",
        "sin ningún coste", "sin compromiso alguno", "llamada comercial",
        "fines comerciales", "mejorar su", "actualizar su", "revisar su contrato",
    ),
), weight=0.15)


# Default emergency keywords suggested for new users
DEFAULT_CUSTOM_EMERGENCY_KEYWORDS = (
    "urgente", "emergencia", "accidente", "hospital",
    "ambulancia", "policía", "ayuda", "grave",
)
