"""Configuration spécifique au module PDF.

Utilise Pydantic BaseSettings pour permettre la surcharge par
des variables d'environnement (préfixe PDF_).
"""

from pydantic_settings import BaseSettings


class PDFSettings(BaseSettings):
    """Paramètres de l'en-tête et de la mise en page des devis PDF."""

    COMPANY_NAME: str = "CHENNAI GRACY BOYS"
    COMPANY_SUBTITLE: str = "A & Z EVENT MANAGEMENT"
    COMPANY_CONTACT_LINE: str = (
        "Chennai, Tamil Nadu, India | Phone: +91 XXXXX XXXXXX | Email: info@chennaigracyboys.com"
    )
    FOOTER_TEXT: str = "Thank you for choosing A & Z Event Management"
    PRIMARY_COLOR_HEX: str = "#1e3a8a"
    # Les polices standard de ReportLab n'ont pas le glyphe ₹
    CURRENCY_LABEL: str = "Rs."

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        env_prefix = 'PDF_'
        extra = 'ignore'


pdf_settings = PDFSettings()
