from typing import Annotated

from fastapi import Depends

from quotedesk.pdf.config import pdf_settings
from quotedesk.pdf.generator import AbstractPDFGenerator
from quotedesk.pdf.reportlab_generator import ReportLabPDFGenerator


def get_pdf_generator() -> AbstractPDFGenerator:
    """Fournit l'implémentation concrète du générateur (ReportLab)."""
    return ReportLabPDFGenerator(settings=pdf_settings)


PDFGeneratorDep = Annotated[AbstractPDFGenerator, Depends(get_pdf_generator)]
