class FinKitError(Exception):
    """Base class for errors raised by finkit."""


class ParseError(FinKitError):
    """A file could not be turned into transactions. Aborts the whole import."""

    def __init__(self, file_name: str, reason: str) -> None:
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Failed to parse {file_name}: {reason}")


class UnsupportedFileError(ParseError):
    pass


class EmptyFileError(ParseError):
    def __init__(self, file_name: str, reason: str = "no transactions found") -> None:
        super().__init__(file_name, reason)


class RuleTableError(FinKitError):
    pass


class PersonalDataError(FinKitError):
    def __init__(self, issues: list[str]) -> None:
        self.issues = issues
        super().__init__(
            f"Data contains non-anonymized personal information ({len(issues)} issue(s))"
        )


class UnknownTransactionError(FinKitError):
    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Unknown transaction id: {transaction_id}")


class UnknownCategoryError(FinKitError):
    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"Unknown category: {category}")
