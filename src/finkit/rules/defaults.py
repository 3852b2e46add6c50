"""Built-in rule tables.

Everything here can be replaced or extended through a JSON rules file, see
:meth:`finkit.rules.table.RuleTable.from_file`. Patterns are case-insensitive.
"""

# (pattern, category, display merchant). First match wins, so keep the more
# specific rules above the generic ones.
MERCHANT_RULES: list[tuple[str, str, str | None]] = [
    # Groceries
    (r"\b(rewe|aldi|lidl|edeka|netto|penny|kaufland|real)\b", "Groceries", None),
    (r"\b(dm[- ]drogerie|rossmann|müller)\b", "Groceries", None),
    (r"\blebensmittel\b", "Groceries", None),
    # Eating out and delivery
    (r"\b(lieferando|uber\s*eats|wolt|delivery\s*hero)\b", "Eating Out", "Delivery Service"),
    (r"\b(mcdonalds|burger\s*king|subway|kfc|starbucks)\b", "Eating Out", None),
    (r"\b(restaurant|cafe|coffee|bistro|pizza|kebab|sushi)\b", "Eating Out", None),
    (r"\blieferservice\b", "Eating Out", None),
    # Subscriptions and entertainment
    (r"\b(netflix|spotify|amazon\s*prime|apple\s*music)\b|\bdisney\+", "Subscriptions", None),
    (r"\b(playstation|xbox|steam|nintendo|epic\s*games)\b", "Personal Entertainment", None),
    (r"\b(apple|itunes|google\s*play)\b", "Personal Entertainment", None),
    (r"\bsony\s*interactive\b", "Personal Entertainment", None),
    (r"\bin-app\b", "Personal Entertainment", None),
    # Shopping
    (r"\b(amazon|zalando|otto|ebay|mediamarkt|saturn)\b", "Shopping", "Online Shopping"),
    (r"(\bh&m\b|\bzara\b|\bprimark\b|\bc&a\b|\btk\s*maxx\b|\bzeeman\b)", "Shopping", None),
    (r"\b(ikea|möbel)\b", "Shopping", None),
    (r"\b(flaconi|douglas)\b", "Shopping", None),
    # Rent
    (r"\b(miete|rent|wohnung|apartment)\b", "Rent", None),
    # Transport
    (r"\b(deutsche\s*bahn|db\s|bvg|mvv|hvv|rmv|vbb)\b", "Public Transport", None),
    (r"\b(uber|bolt|freenow|taxi)\b", "Public Transport", None),
    (r"\b(shell|aral|esso|total|tankstelle)\b", "Car", None),
    (r"\b(parkhaus|parking)\b", "Car", None),
    (r"\bführerschein\b", "Car", None),
    # Living
    (r"\b(rundfunk|ard|zdf|beitragsservice)\b", "Radio Tax", None),
    (r"\b(telekom|vodafone|o2|congstar|aldi\s*talk)\b", "Internet", None),
    (r"\b(strom|vattenfall|eon|enercity|stadtwerke)\b", "Electricity", None),
    # Insurance
    (r"\b(allianz|ergo|huk|axa|versicherung|getsafe)\b", "Insurance", None),
    # Health
    (r"\b(apotheke|pharmacy|arzt|doctor|klinik|krankenhaus)\b", "Health & Wellbeing", None),
    (r"\b(fitnessstudio|gym|mcfit|fitness\s*first)\b", "Health & Wellbeing", None),
    # Investment
    (r"\b(scalable\s*capital|trade\s*republic|comdirect|ing\s*diba)\b", "Investment", None),
    (r"\b(sparplan|etf|depot|kapitalanlage)\b", "Investment", None),
    # Income
    (r"\b(lohn|gehalt|salary|wage)\b", "Income", None),
    (r"\b(erstattung|refund|rückerstattung)\b", "Income", None),
    (r"\bfinanzamt\b", "Income", None),
    # Travel
    (r"\b(lufthansa|ryanair|easyjet|booking\.com|airbnb|hotel)\b", "Travel", None),
    (r"\b(flug|flight|reise|urlaub)\b", "Travel", None),
]

# Description patterns that mark a booking as a transfer during categorization.
TRANSFER_PATTERNS: list[str] = [
    r"\bsent\s+from\b",
    r"\bmoved\s+(to|from)\b",
    r"\büberweisungen?\b",
    r"\bumbuchung\b",
    r"\binternal\s+transfer\b",
    r"\bübertrag\b",
]

# Phrases used by neobanks and German banks for moves between own accounts.
TRANSFER_KEYWORDS: list[str] = [
    "sent from n26",
    "moved to",
    "moved from",
    "umbuchung",
    "übertrag",
    "internal transfer",
    "from your eur balance",
    "to your eur balance",
    "from main account",
    "to main account",
    "from euro - konto",
    "to euro - konto",
    "from travel fund",
    "to travel fund",
    "from driver",
    "to driver",
]

# Prepositions that link a description to one of the user's own accounts,
# e.g. "Transfer to Wise" or "Überweisung an DKB".
ACCOUNT_DIRECTION_WORDS: list[str] = ["to", "from", "an", "von", "nach", "auf"]

KNOWN_MERCHANTS: list[str] = [
    # Supermarkets
    "rewe", "aldi", "lidl", "edeka", "netto", "penny", "kaufland", "real",
    # Drugstores
    "dm", "rossmann", "müller",
    # Online retail
    "amazon", "zalando", "otto", "ebay", "mediamarkt", "saturn", "flaconi",
    # Food delivery
    "lieferando", "wolt", "uber eats", "delivery hero",
    # Fast food
    "mcdonalds", "burger king", "subway", "kfc", "starbucks",
    # Tech and entertainment
    "apple", "netflix", "spotify", "playstation", "xbox", "steam", "nintendo",
    "sony interactive entertainment", "google", "paypal",
    # Banks and finance
    "scalable capital", "trade republic", "n26", "dkb", "sparkasse", "commerzbank",
    "deutsche bank", "ing", "comdirect", "finanzamt", "transferwise", "wise",
    # Insurance
    "allianz", "ergo", "huk", "axa", "getsafe",
    # Telecom
    "telekom", "vodafone", "o2", "congstar", "aldi talk", "rebtel",
    # Transport
    "deutsche bahn", "db", "bvg", "uber", "bolt", "freenow",
    # Utilities
    "vattenfall", "eon", "beitragsservice", "ard", "zdf",
    # Other
    "ikea", "h&m", "zara", "primark", "zeeman", "maya handels",
]

BUSINESS_SUFFIXES: list[str] = [
    "gmbh", "ag", "ltd", "inc", "co", "kg", "ohg", "ug", "se", "ev", "e.v.",
    "corp", "llc", "limited", "holding", "group", "services", "payments",
    "bank", "sparkasse", "versicherung", "finanz", "capital",
]

# Stripped from learned-mapping keys before comparing.
LEGAL_SUFFIXES: list[str] = [
    "gmbh", "gmbh co kg", "co kg", "ag", "kg", "ug", "se", "ltd", "inc",
    "llc", "corp", "limited", "sarl", "bv", "ev",
]
PAYMENT_PREFIXES: list[str] = [
    "paypal ", "pp ", "sumup ", "stripe ", "klarna ", "sq ", "zettle ", "google pay ",
    "apple pay ", "visa ", "mastercard ",
]

HEADER_MAPPINGS: dict[str, dict[str, str]] = {
    "Finanzguru": {
        "Buchungstag": "date",
        "Referenzkonto": "reference_account",
        "Name Referenzkonto": "reference_account_name",
        "Betrag": "amount",
        "Kontostand": "balance",
        "Waehrung": "currency",
        "Währung": "currency",
        "Beguenstigter/Auftraggeber": "recipient",
        "Begünstigter/Auftraggeber": "recipient",
        "IBAN Beguenstigter/Auftraggeber": "recipient_iban",
        "IBAN Begünstigter/Auftraggeber": "recipient_iban",
        "Verwendungszweck": "description",
        "Analyse-Hauptkategorie": "category",
        "Analyse-Unterkategorie": "subcategory",
        "Analyse-Umbuchung": "is_transfer",
    },
    "N26": {
        "Datum": "date",
        "Empfänger": "recipient",
        "Kontonummer": "recipient_iban",
        "Transaktionstyp": "category",
        "Verwendungszweck": "description",
        "Betrag (EUR)": "amount",
        "Betrag (Fremdwährung)": "foreign_amount",
        "Fremdwährung": "foreign_currency",
        "Wechselkurs": "exchange_rate",
        "Date": "date",
        "Payee": "recipient",
        "Account number": "recipient_iban",
        "Transaction type": "category",
        "Payment reference": "description",
        "Amount (EUR)": "amount",
        "Amount (Foreign Currency)": "foreign_amount",
        "Type Foreign Currency": "foreign_currency",
        "Exchange Rate": "exchange_rate",
    },
    "DKB": {
        "Buchungstag": "date",
        "Wertstellung": "value_date",
        "Buchungstext": "category",
        "Auftraggeber / Begünstigter": "recipient",
        "Verwendungszweck": "description",
        "Kontonummer": "recipient_iban",
        "BLZ": "bank_code",
        "Betrag (EUR)": "amount",
        "Gläubiger-ID": "creditor_id",
        "Mandatsreferenz": "mandate_ref",
        "Kundenreferenz": "customer_ref",
    },
    "ING-DiBa": {
        "Buchung": "date",
        "Valuta": "value_date",
        "Auftraggeber/Empfänger": "recipient",
        "Buchungstext": "category",
        "Verwendungszweck": "description",
        "Saldo": "balance",
        "Währung": "currency",
        "Betrag": "amount",
    },
    "Sparkasse": {
        "Buchungstag": "date",
        "Valutadatum": "value_date",
        "Buchungstext": "category",
        "Verwendungszweck": "description",
        "Beguenstigter/Zahlungspflichtiger": "recipient",
        "Kontonummer": "recipient_iban",
        "BLZ": "bank_code",
        "Betrag": "amount",
        "Waehrung": "currency",
    },
    "Generic CSV": {
        "Date": "date",
        "Booking Date": "date",
        "Transaction Date": "date",
        "Value Date": "value_date",
        "Amount": "amount",
        "Currency": "currency",
        "Description": "description",
        "Recipient": "recipient",
        "Payee": "recipient",
        "IBAN": "recipient_iban",
        "Category": "category",
        "Reference": "reference_account",
        "Memo": "description",
        "Notes": "description",
    },
}
