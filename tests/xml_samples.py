"""Builders for PubMed-shaped XML used across tests."""

from __future__ import annotations

DOCTYPE = (
    '<?xml version="1.0" ?>\n'
    '<!DOCTYPE PubmedArticleSet PUBLIC "-//NLM//DTD PubMedArticle, 1st January 2024//EN" '
    '"https://dtd.nlm.nih.gov/ncbi/pubmed/out/pubmed_240101.dtd">\n'
)


def pubmed_article(pmid: str | None, *abstracts: str) -> str:
    """Return one PubmedArticle element; abstracts are inserted verbatim."""
    pmid_xml = f'<PMID Version="1">{pmid}</PMID>' if pmid is not None else ""
    abstract_xml = ""
    if abstracts:
        texts = "".join(f"<AbstractText>{text}</AbstractText>" for text in abstracts)
        abstract_xml = f"<Abstract>{texts}</Abstract>"
    return (
        "<PubmedArticle>"
        '<MedlineCitation Status="MEDLINE" Owner="NLM">'
        f"{pmid_xml}"
        f"<Article><ArticleTitle>Title {pmid}</ArticleTitle>{abstract_xml}</Article>"
        "</MedlineCitation>"
        "<PubmedData><PublicationStatus>ppublish</PublicationStatus></PubmedData>"
        "</PubmedArticle>"
    )


def pubmed_xml(*articles: str, doctype: bool = True) -> str:
    """Wrap PubmedArticle elements in a PubmedArticleSet document."""
    head = DOCTYPE if doctype else ""
    return f"{head}<PubmedArticleSet>{''.join(articles)}</PubmedArticleSet>\n"


def esearch_xml(count: int) -> str:
    """Return an ENTREZ_DIRECT document as printed by esearch."""
    return (
        "<ENTREZ_DIRECT>\n"
        "  <Db>pubmed</Db>\n"
        "  <WebEnv>MCID_0000</WebEnv>\n"
        "  <QueryKey>1</QueryKey>\n"
        f"  <Count>{count}</Count>\n"
        "  <Step>1</Step>\n"
        "</ENTREZ_DIRECT>\n"
    )
