import pypdf

from llmbench.core.export.layout import PageGeometry, PageSize, TextStyle
from llmbench.core.models import PanelOutput


def test_export_writes_a_pdf(qapp, tmp_path, comparison):
    from llmbench.core.export.pdf_writer import export_as_pdf

    path = export_as_pdf(comparison, tmp_path / "exports" / "cats.pdf")

    assert path.exists()
    assert path.read_bytes().startswith(b"%PDF")
    assert len(pypdf.PdfReader(str(path)).pages) == 1


def test_tall_export_spans_pages(qapp, tmp_path, comparison):
    from llmbench.core.export.pdf_writer import export_as_pdf

    comparison.output_a = PanelOutput.success("\n".join(f"line {n}" for n in range(300)))
    comparison.output_b = PanelOutput.failure("timeout")

    path = export_as_pdf(
        comparison, tmp_path / "tall.pdf",
        geometry=PageGeometry(PageSize.LETTER), with_diff=False,
    )

    assert len(pypdf.PdfReader(str(path)).pages) >= 2


def test_qt_measurer_grows_with_text(qapp, tmp_path):
    from llmbench.core.export.pdf_writer import PdfRenderer, QtTextMeasurer

    writer = PdfRenderer.create_writer(tmp_path / "probe.pdf", PageGeometry())
    measurer = QtTextMeasurer(writer)
    style = TextStyle(size=9)

    assert measurer.width("", style) == 0
    assert measurer.width("wide text", style) >= measurer.width("w", style)
