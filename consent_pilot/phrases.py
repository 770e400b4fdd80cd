"""Multilingual phrase tables and vocabulary tests for consent prompts.

All tables are lower-cased, de-duplicated tuples built once at import.
Matching is a substring test, except for phrases of three characters or
fewer ("ok", "yes", "no") which must stand as a whole word so that
"ok" does not match "cookie".
"""

from __future__ import annotations

import re
from functools import lru_cache


def phrase_table(*phrases: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for p in phrases:
        key = p.strip().lower()
        if key:
            seen.setdefault(key, None)
    return tuple(seen)


# Words that indicate a cookie/consent prompt, 60+ languages.
CONSENT_DETECT = phrase_table(
    "cookie", "cookies", "privacy", "consent", "gdpr", "ccpa",
    "datenschutz", "einstellungen", "akzeptieren", "ablehnen", "personalisierte",
    "données", "donnees", "témoins", "temoins", "choix", "partenaires", "paramètres", "parametres",
    "galletas", "aceptar", "rechazar", "privacidad", "consentimiento",
    "biscotti", "accetta", "rifiuta", "consenso", "impostazioni",
    "aceitar", "recusar", "privacidade", "consentimento",
    "koekjes", "accepteer", "weiger", "toestemming", "voorkeuren",
    "kakor", "godkänn", "avvisa", "integritet", "samtycke", "inställningar",
    "du väljer kakor", "godkänn alla", "godkänn endast", "välj nivå", "hantera kakor", "cookiepolicy",
    "godta", "avvis", "personvern", "samtykke",
    "evästeet", "evasteet", "hyväksy", "hylkää", "yksityisyys", "suostumus",
    "ciasteczka", "plik cookie", "akceptuj", "odrzuc", "prywatność", "zgoda",
    "přijmout", "odmítnout", "souhlas", "nastavení", "soubor",
    "súbory cookie", "prijať", "odmietnuť", "súhlas",
    "sütik", "elfogad", "elutasít", "adatvédelem", "hozzájárulás",
    "cookie-uri", "refuz", "confidențialitate", "consimțământ",
    "kolačići", "prihvati", "odbij", "privatnost", "pristanak",
    "бисквитки", "куки", "приемам", "отказ", "поверителност", "съгласие",
    "печенье", "принять", "отклонить", "приватность", "согласие",
    "прийняти", "відхилити", "приватність", "згода",
    "τραγανίτες", "αποδοχή", "άρνηση", "ιδιωτικότητα", "συναίνεση",
    "çerez", "çerezler", "kabul", "reddet", "gizlilik", "onay",
    "كوكي", "كوكيز", "قبول", "رفض", "خصوصية", "موافقة", "ملفات",
    "クッキー", "同意", "拒否", "プライバシー", "承諾",
    "饼干", "接受", "拒绝", "隐私", "曲奇",
    "쿠키", "수락", "거부", "개인정보", "동의",
    "คุกกี้", "ยอมรับ", "ปฏิเสธ", "ความเป็นส่วนตัว", "ความยินยอม",
    "chấp nhận", "từ chối", "quyền riêng tư", "đồng ý",
    "terima", "tolak", "privasi", "persetujuan", "setuju",
    "स्वीकार", "अस्वीकार", "गोपनीयता", "सहमति", "कुकी",
    "מקבל", "דוחה", "פרטיות", "הסכמה", "עוגיות",
    "راضی", "موافق", "قبول کردن", "کوکی", "کوکیز", "پرائیویسی",
    "tinatanggap", "tanggi", "pagsang-ayon",
    "zvana", "kubvuma",
    "sutikti", "atmeskite", "privatumas", "slapukai",
    "piekrīt", "noraidīt", "privātums", "sīkdatnes",
    "nõustu", "keelduda", "privaatsus", "küpsised",
    "souhlasím", "souhlasiť", "súhlasím",
    "strinjam", "zavrnem", "zasebnost", "piškotki",
    "pristajem", "odbijam",
    "согласен", "приватност", "колачиња",
    "pranoj", "refuzoj", "privatësia", "biskotat",
    "accept all", "reject all", "allow all", "refuse all", "essential only",
    "manage", "save & exit", "make a choice", "personalised", "truste", "onetrust",
    "iubenda", "didomi", "cookiebot", "quantcast", "sourcepoint", "sp_cc", "sp-cc",
    "value your privacy", "technology partner", "you're in control", "purposes", "vendors",
)

# Accept/agree control text.
ACCEPT = phrase_table(
    "accept all", "allow all", "accept", "agree", "allow", "ok", "yes", "continue",
    "i accept", "i agree", "accept all cookies", "accept cookies", "allow all cookies",
    "alle akzeptieren", "akzeptieren", "zustimmen", "alle zustimmen",
    "tout accepter", "accepter tout", "j'accepte", "accepter", "j’accepte",
    "aceptar todo", "aceptar", "acepto", "consiento",
    "accetta tutti", "accetta", "accetto", "consenti",
    "aceitar todos", "aceitar", "concordo", "permitir",
    "accepteer alle", "accepteer", "akkoord", "ga door", "toestaan",
    "godkänn allt", "godkänn alla", "godkänn", "acceptera", "tillåt alla", "acceptera alla",
    "godta alle", "aksepter alle", "tillat alle",
    "hyväksy kaikki", "hyväksy", "salli kaikki",
    "continua", "okej", "okay",
    "přijmout vše", "souhlasím", "přijmout",
    "prijať všetko", "súhlasím", "prijať",
    "elöljáró beleegyezés", "elfogadom", "elfogad", "mindent elfogad",
    "acceptez", "totul", "sunt de acord",
    "prihvati sve", "prihvati", "slažem se",
    "приемам всички", "приемам", "съгласен съм",
    "принять все", "принять", "принимаю", "согласен",
    "прийняти всі", "прийняти", "згоден",
    "αποδοχή όλων", "αποδοχή", "συμφωνώ",
    "tümünü kabul et", "kabul et", "kabul ediyorum", "onayla",
    "قبول الكل", "قبول", "موافق",
    "すべて受け入れる", "受け入れる", "同意する",
    "接受全部", "接受", "同意",
    "모두 수락", "수락", "동의",
    "ยอมรับทั้งหมด", "ยอมรับ", "ตกลง",
    "chấp nhận tất cả", "chấp nhận", "đồng ý",
    "terima semua", "terima", "setuju",
    "स्वीकार", "मैं सहमत", "सभी स्वीकार",
    "מאשר", "מסכים", "אני מסכים",
    "موافقم", "قبول میکنم", "پذیرش",
    "ہاں", "میں راضی",
    "tinatanggap", "sumasang-ayon", "pumapayag",
    "ndapagura", "ndabvuma", "sutinku", "piekrītu", "nõustun",
    "strinjam", "pristajem", "pranoj",
    "got it", "i understand", "yes, i agree", "continue to site",
    "accept and close", "accept and continue", "agree and continue",
    "accepter et continuer", "accept and proceed",
)

_ALL_WORDS = re.compile(
    r"\b(?:all|alla|alle|tous|tout|tutti|todo|todos|vše|všetko|kaikki|semua)\b"
    r"|όλων|全部|모두|ทั้งหมด|tất cả|सभी|הכל|الكل|すべて|всі|все|всички",
    re.IGNORECASE,
)

# Accept phrases that grant everything; preferred over a plain "accept".
ACCEPT_ALL = tuple(p for p in ACCEPT if _ALL_WORDS.search(p))

# Reject/refuse/essential-only control text.
REJECT = phrase_table(
    "reject all", "refuse all", "decline all", "essential only", "necessary only",
    "essential cookies only", "reject", "refuse", "decline", "no thanks", "deny",
    "alle ablehnen", "ablehnen", "nur notwendige",
    "tout refuser", "refuser tout", "refuser", "continuer sans accepter", "seulement essentiels",
    "rechazar todo", "rechazar", "solo necesarios", "solo los necesarios",
    "rifiuta tutti", "rifiuta", "solo necessari", "no grazie",
    "recusar todos", "recusar", "apenas necessários", "não obrigado",
    "weiger alle", "afwijzen", "alleen noodzakelijk", "nee bedankt",
    "avvisa alla", "neka allt", "godkänn endast nödvändiga", "endast nödvändiga", "nej tack", "avvisa",
    "avvis alle", "nei takk", "kun nødvendige", "avvis",
    "afvis alle", "nej tak",
    "hylkää kaikki", "vain välttämättömät", "ei kiitos",
    "odmítnout vše", "odmítnout", "pouze nezbytné", "ne díky",
    "odmietnuť", "iba nevyhnutné", "nie ďakujem",
    "elutasít mindent", "elutasít", "csak szükséges",
    "refuz tot", "refuz", "doar esențiale",
    "odbij sve", "odbij", "samo potrebni",
    "отклонявам", "отказ", "само необходими",
    "отклонить", "только необходимые",
    "відхилити", "тільки необхідні",
    "απόρριψη", "άρνηση", "μόνο απαραίτητα",
    "tümünü reddet", "reddet", "sadece gerekli",
    "رفض", "رفض الكل", "لا أوافق",
    "拒否", "拒绝", "全部拒绝",
    "거부", "모두 거부", "필수만",
    "ปฏิเสธ", "ปฏิเสธทั้งหมด",
    "từ chối", "từ chối tất cả",
    "tolak", "tolak semua", "enggan",
    "अस्वीकार", "स्वीकार नहीं",
    "דוחה", "מסרב",
    "رد", "نمی‌پذیرم",
    "tanggi", "tinanggihan",
)

# Save / confirm choice text.
SAVE = phrase_table(
    "save", "confirm", "save preferences", "save choices", "save settings",
    "spara", "spara val", "bekräfta", "bekräfta val",
    "lagre", "gem", "bekræft",
    "tallenna", "vahvista", "tallenna valinnat",
    "opslaan", "bevestigen",
    "salva", "conferma", "salva e chiudi", "conferma e chiudi",
    "guardar", "confirmar", "guardar preferencias",
    "enregistrer", "valider", "enregistrer les préférences",
    "ulozit", "uložiť", "uložit nastavení",
    "zapisz", "zapisz ustawienia", "potwierdź",
    "mentés", "mentés és bezárás",
    "salvează", "confirmă",
    "запази", "потвърди",
    "сохранить", "подтвердить",
    "αποθήκευση", "επιβεβαίωση",
    "kaydet", "onayla",
    "保存", "確認", "儲存",
    "저장", "확인",
    "บันทึก", "ยืนยัน",
    "lưu", "xác nhận",
    "simpan", "konfirmasi",
    "सहेजें", "पुष्टि",
    "שמור", "אישור",
    "patvirtinti", "išsaugoti",
    "saglabāt", "apstiprināt",
)

# "Continue by accepting cookies" on subscription walls.
PAYWALL_ACCEPT = phrase_table(
    "continúa aceptando las cookies", "continua aceptando", "continue accepting cookies",
    "accept cookies", "aceptar cookies", "aceptar las cookies", "accepter les cookies",
    "o continúa aceptando", "o continua aceptando", "or accept cookies",
    "continue with cookies", "continuer avec les cookies", "fortfahren mit cookies",
    "accept and continue", "aceptar y continuar", "accepter et continuer",
    "accetta i cookie", "continua con i cookie", "aceitar cookies", "continuar com cookies",
    "cookies accepteren", "doorgaan met cookies", "godkänn cookies", "fortsätt med kakor",
    "hyväksy evästeet", "jatka evästeillä", "akzeptiere cookies", "cookies akzeptieren",
    "akceptuj wszystkie", "přijmout vše", "akceptovať všetko",
    "accepta cookies", "continuă cu cookie-urile",
    "приемам бисквитките", "принять cookies", "прийняти cookies",
    "αποδοχή cookies", "sutinku su slapukais",
    "cookies kabul et", "cookies onayla",
    "قبول الكوكيز", "موافق على الكوكيز",
    "クッキーを受け入れる", "同意して続行",
    "接受cookie", "同意并继续",
    "쿠키 수락", "동의하고 계속",
)

# Settings / manage-choices text.
SETTINGS = phrase_table(
    "välj nivå", "hantera cookies", "hantera kakor", "manage cookies", "manage preferences",
    "inställningar", "preferenser", "settings", "customize", "customise", "valinnat", "asetukset",
    "voorkeuren", "impostazioni", "preferenze", "paramètres", "gérer les cookies",
    "einstellungen", "more options", "options",
)


def _escaped_alternation(phrases: tuple[str, ...]) -> str:
    return "|".join(re.escape(p) for p in sorted(phrases, key=len, reverse=True))


CONSENT_REGEX = re.compile(_escaped_alternation(CONSENT_DETECT), re.IGNORECASE)

SUBSCRIPTION_REGEX = re.compile(
    r"suscripcion|suscripción|subscription|abonnement|abbonamento|subscribe|inscrição|inscricao|"
    r"suscribete|abonnieren|€|\$\d|choose.*plan|elige.*modelo|paywall|plan mensual|plan anual|"
    r"monthly|annual|abonneer|prenumerera|tilaa|inscreva|inscription|\babo\b|会员|구독|"
    r"สมัครสมาชิก|đăng ký|berlangganan",
    re.IGNORECASE,
)

PAYWALL_CONSENT_REGEX = re.compile(
    r"cookie|accept|aceptar|accepter|akzeptieren|continúa|continue|continuer|fortfahren|accetta|"
    r"aceitar|수락|接受|同意|ยอมรับ|chấp nhận|terima|स्वीकार|قبول|קיבלתי",
    re.IGNORECASE,
)

_SUBSCRIBE_WORDS = (
    r"subscribe|suscripción|suscripcion|suscriber|abonnement|s'abonner|abbonamento|"
    r"inscrição|inscricao|pagar|\bpay\b|purchase|\bbuy\b|comprar|abonnieren|订阅|訂閱"
)
_REJECT_WORDS = r"reject|refuse|rechazar|rifiuta|refuser|ablehnen|odmítnout"

SUBSCRIBE_REGEX = re.compile(_SUBSCRIBE_WORDS, re.IGNORECASE)

REJECT_TIED_REGEXES = (
    re.compile(rf"({_REJECT_WORDS}).*({_SUBSCRIBE_WORDS})", re.IGNORECASE),
    re.compile(rf"({_SUBSCRIBE_WORDS}).*({_REJECT_WORDS})", re.IGNORECASE),
    re.compile(
        r"obligatorisch|werbefrei|consent required|zwingend zustimmen|"
        r"accéder gratuitement|free.*by accepting|accept.*data use",
        re.IGNORECASE,
    ),
)

ACCEPT_VOCAB_REGEX = re.compile(
    r"accepter|accept|subscribe|suscripción|suscripcion|s'abonner|abonnement", re.IGNORECASE
)
REJECT_VOCAB_REGEX = re.compile(
    r"refuser|reject|refuse|ablehnen|rechazar|rifiuta|decline|odbij", re.IGNORECASE
)


@lru_cache(maxsize=4096)
def _word_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)")


def matches_phrase(text: str, phrase: str) -> bool:
    if not text or not phrase:
        return False
    if len(phrase) <= 3 and phrase.isascii():
        return _word_pattern(phrase).search(text) is not None
    return phrase in text


def match_any(text: str, phrases: tuple[str, ...] | list[str]) -> str | None:
    """First phrase contained in text, or None. Text must already be lower-cased."""
    for phrase in phrases:
        if matches_phrase(text, phrase):
            return phrase
    return None


def has_consent_like_text(text: str | None) -> bool:
    if not text:
        return False
    return CONSENT_REGEX.search(text) is not None


def is_subscription_paywall(body_text: str, url: str = "") -> bool:
    """Subscription vocabulary co-occurring with consent vocabulary."""
    if not body_text:
        return False
    return (
        SUBSCRIPTION_REGEX.search(body_text + " " + url) is not None
        and PAYWALL_CONSENT_REGEX.search(body_text) is not None
    )


def reject_tied_to_subscription(body_text: str) -> bool:
    return any(r.search(body_text or "") for r in REJECT_TIED_REGEXES)


def no_reject_option(body_text: str) -> bool:
    text = body_text or ""
    return ACCEPT_VOCAB_REGEX.search(text) is not None and REJECT_VOCAB_REGEX.search(text) is None


def mentions_subscription(text: str) -> bool:
    return SUBSCRIBE_REGEX.search(text or "") is not None


def is_no_button(text: str) -> bool:
    t = (text or "").strip().lower()
    if len(t) > 15:
        return False
    return t in ("no", "no.", "no thanks") or re.match(r"^no[\s,.]", t) is not None


def is_yes_button(text: str) -> bool:
    t = (text or "").strip().lower()
    if len(t) > 20:
        return False
    return t in ("yes", "yes.", "yes,", "yes!", "yes please") or re.match(r"^yes[\s,.]", t) is not None
