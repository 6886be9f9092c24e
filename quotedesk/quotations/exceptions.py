"""Exceptions spécifiques au module Quotations."""

from typing import List, Optional


class QuotationDomainException(Exception):
    """Classe de base pour les exceptions du module Quotations."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class QuotationNotFoundException(QuotationDomainException):
    """Levée lorsqu'un devis spécifique n'est pas trouvé."""
    def __init__(self, quotation_id: str):
        super().__init__(f"Devis avec ID {quotation_id} non trouvé.")
        self.quotation_id = quotation_id


class StoreUnavailableException(QuotationDomainException):
    """Levée lorsque le stockage est injoignable, refuse l'accès ou dépasse le délai."""
    def __init__(self, operation: str, detail: str = "Stockage indisponible."):
        super().__init__(f"Erreur stockage ({operation}): {detail}")
        self.operation = operation
        self.detail = detail


class QuotationSaveInProgressException(QuotationDomainException):
    """Levée si une sauvegarde du même devis est déjà en cours."""
    def __init__(self, quotation_id: str):
        super().__init__(f"Une sauvegarde du devis {quotation_id} est déjà en cours.")
        self.quotation_id = quotation_id


class DraftNotFoundException(QuotationDomainException):
    """Levée lorsqu'aucun brouillon ouvert ne correspond à l'identifiant."""
    def __init__(self, quotation_id: str):
        super().__init__(f"Aucun brouillon ouvert pour le devis {quotation_id}.")
        self.quotation_id = quotation_id


class EditorClosedException(QuotationDomainException):
    """Levée lors d'une interaction avec l'éditeur d'un devis supprimé."""
    def __init__(self, quotation_id: str):
        super().__init__(f"Le devis {quotation_id} a été supprimé, l'éditeur est fermé.")
        self.quotation_id = quotation_id


class InvalidQuotationStatusException(QuotationDomainException):
    """Levée lorsque le statut fourni pour un devis est invalide."""
    def __init__(self, status: str, allowed: List[str]):
        allowed_str = ", ".join(allowed)
        super().__init__(f"Le statut '{status}' est invalide. Statuts autorisés: {allowed_str}.")
        self.status = status
        self.allowed = allowed


class InvalidQuotationFieldException(QuotationDomainException):
    """Levée pour un champ d'en-tête inconnu, calculé ou illisible."""
    def __init__(self, field: str, detail: Optional[str] = None):
        message = f"Champ '{field}' invalide"
        if detail:
            message += f": {detail}"
        super().__init__(message + ".")
        self.field = field
        self.detail = detail
