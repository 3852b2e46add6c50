EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Rent",
    "Eating Out",
    "Personal Entertainment",
    "Subscriptions",
    "Car",
    "Public Transport",
    "Internet",
    "Electricity",
    "Insurance",
    "Travel",
    "Groceries",
    "Family",
    "Radio Tax",
    "Health & Wellbeing",
    "Shopping",
    "Other",
    "Gifts",
)

INCOME = "Income"
SAVINGS = "Savings"
INVESTMENT = "Investment"
TRANSFER = "Transfer"
OTHER = "Other"

AVAILABLE_CATEGORIES: tuple[str, ...] = EXPENSE_CATEGORIES + (
    INCOME,
    SAVINGS,
    INVESTMENT,
    TRANSFER,
)


def is_canonical(category: str | None) -> bool:
    return category in AVAILABLE_CATEGORIES


# Finanzguru "Analyse-Hauptkategorie/Analyse-Unterkategorie" -> canonical category.
# Lookup tries "category/subcategory" first, then the bare category.
SOURCE_CATEGORY_MAP: dict[str, str] = {
    "Essen & Trinken/Lebensmittel": "Groceries",
    "Essen & Trinken/Lieferservice": "Eating Out",
    "Essen & Trinken": "Groceries",
    "Wohnen/Rundfunkgebuehren": "Radio Tax",
    "Wohnen/Internet & Telefon": "Internet",
    "Wohnen/Miete": "Rent",
    "Wohnen/Strom": "Electricity",
    "Wohnen": "Rent",
    "Lifestyle/Shopping": "Shopping",
    "Lifestyle/Bekleidung": "Shopping",
    "Lifestyle/Mobilfunk": "Internet",
    "Lifestyle/Prime-Mitgliedschaft": "Subscriptions",
    "Lifestyle/Sonstiger Lifestyle": "Shopping",
    "Lifestyle": "Shopping",
    "Freizeit/In-App-Kaeufe": "Personal Entertainment",
    "Freizeit": "Personal Entertainment",
    "Gesundheit/Apotheke": "Health & Wellbeing",
    "Gesundheit": "Health & Wellbeing",
    "Mobilitaet/Fuehrerschein": "Car",
    "Mobilitaet/Auto": "Car",
    "Mobilitaet": "Public Transport",
    "Versicherungen/Sonstige Sachversicherung": "Insurance",
    "Versicherungen": "Insurance",
    "Sparen/Kapitalanlage": "Investment",
    "Sparen/Sparplan": "Investment",
    "Sparen": "Savings",
    "Finanzen/Investment": "Investment",
    "Finanzen/Steuern": "Other",
    "Finanzen": "Other",
    "Einnahmen/Lohn / Gehalt": "Income",
    "Einnahmen/Sonstige Einnahmen": "Income",
    "Einnahmen": "Income",
    "Sonstiges/Sonstige Ausgaben": "Other",
    "Sonstiges": "Other",
    "Drogerie/Drogerie": "Groceries",
    "Drogerie": "Groceries",
}
