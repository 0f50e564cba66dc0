import pytest

from telco_churn.cleaning import clean_table
from telco_churn.config import EXPECTED_COLUMNS
from telco_churn.errors import DataLoadError, ValidationError
from telco_churn.loading import load_table


def test_load_reads_all_rows_and_blank_charges(csv_path, raw_frame):
    df = load_table(csv_path)
    assert df.shape == raw_frame.shape
    assert list(df.columns) == EXPECTED_COLUMNS
    assert df["TotalCharges"].isna().sum() == raw_frame["TotalCharges"].isna().sum()
    assert df["TotalCharges"].dtype.kind == "f"
    assert df["customerID"].iloc[0] == "0000-CUST"


def test_missing_file_is_io_error(tmp_path):
    with pytest.raises(DataLoadError) as excinfo:
        load_table(tmp_path / "nope.csv")
    assert isinstance(excinfo.value, IOError)
    assert "load" in str(excinfo.value)


def test_empty_file(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("")
    with pytest.raises(DataLoadError):
        load_table(path)


def test_malformed_row(tmp_path, raw_frame):
    path = tmp_path / "bad.csv"
    raw_frame.head(3).to_csv(path, index=False)
    with open(path, "a", encoding="utf-8") as f:
        f.write(",".join(["x"] * (len(EXPECTED_COLUMNS) + 3)) + "\n")
    with pytest.raises(DataLoadError):
        load_table(path)


def test_missing_columns(tmp_path, raw_frame):
    path = tmp_path / "partial.csv"
    raw_frame.drop(columns=["Contract", "tenure"]).to_csv(path, index=False)
    with pytest.raises(ValidationError) as excinfo:
        load_table(path)
    assert "Contract" in str(excinfo.value)
    assert "tenure" in str(excinfo.value)


def test_undecodable_bytes(tmp_path, raw_frame):
    path = tmp_path / "latin.csv"
    raw_frame.head(5).to_csv(path, index=False)
    with open(path, "ab") as f:
        f.write(b"\xff\xfe" + b",x" * (len(EXPECTED_COLUMNS) - 1) + b"\n")
    with pytest.raises(DataLoadError) as excinfo:
        load_table(path)
    assert isinstance(excinfo.value, IOError)


def test_na_like_text_is_kept(tmp_path, raw_frame):
    path = tmp_path / "na_text.csv"
    raw_frame["Churn"] = raw_frame["Churn"].astype(object)
    raw_frame.loc[4, "Churn"] = "None"
    raw_frame.loc[5, "Contract"] = "NA"
    raw_frame.to_csv(path, index=False, na_rep=" ")

    df = load_table(path)

    assert df.loc[4, "Churn"] == "None"
    assert df.loc[5, "Contract"] == "NA"
    assert df["TotalCharges"].isna().sum() == raw_frame["TotalCharges"].isna().sum()
    with pytest.raises(ValidationError, match="None"):
        clean_table(df)
