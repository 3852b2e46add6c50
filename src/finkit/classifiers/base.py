from abc import ABC, abstractmethod

from finkit.models import CategoryMatch, Transaction


class Classifier(ABC):
    name = "classifier"

    @abstractmethod
    def classify(self, transaction: Transaction) -> CategoryMatch | None:
        """Return a category for the transaction, or None to defer to the next classifier."""
        pass

    def learn(self, merchant: str, category: str) -> None:
        """Record a user correction. Table-driven classifiers ignore it."""
        pass
