from abc import ABC, abstractmethod

from quotedesk.quotations.models import Quotation


class AbstractPDFGenerator(ABC):
    """Interface abstraite pour un générateur de devis PDF."""

    @abstractmethod
    async def generate_quotation_pdf(self, quotation: Quotation) -> bytes:
        """Génère le PDF d'un devis.

        Args:
            quotation: Devis à imprimer. Les totaux sont recalculés depuis
                       les lignes, jamais lus depuis les champs stockés.

        Returns:
            Le contenu binaire du PDF généré.

        Raises:
            PDFGenerationException: Si une erreur survient durant la génération.
        """
        raise NotImplementedError
