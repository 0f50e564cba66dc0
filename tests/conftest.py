import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from telco_churn.cleaning import clean_table


def make_raw(n=600, seed=0):
    """Synthetic telco-shaped raw table with a real churn signal."""
    rng = np.random.default_rng(seed)

    def yes_no(p=0.5):
        return np.where(rng.random(n) < p, "Yes", "No")

    phone = yes_no(0.9)
    internet = rng.choice(["DSL", "Fiber optic", "No"], size=n, p=[0.35, 0.45, 0.2])
    contract = rng.choice(["Month-to-month", "One year", "Two year"], size=n, p=[0.55, 0.25, 0.2])
    tenure = rng.integers(1, 73, size=n)
    tenure[rng.random(n) < 0.02] = 0
    monthly = np.round(rng.uniform(20, 110, size=n), 2)

    def internet_addon():
        return np.where(internet == "No", "No internet service", yes_no(0.4))

    df = pd.DataFrame({
        "customerID": [f"{i:04d}-CUST" for i in range(n)],
        "gender": rng.choice(["Female", "Male"], size=n),
        "SeniorCitizen": (rng.random(n) < 0.16).astype(int),
        "Partner": yes_no(0.5),
        "Dependents": yes_no(0.3),
        "tenure": tenure,
        "PhoneService": phone,
        "MultipleLines": np.where(phone == "No", "No phone service", yes_no(0.45)),
        "InternetService": internet,
        "OnlineSecurity": internet_addon(),
        "OnlineBackup": internet_addon(),
        "DeviceProtection": internet_addon(),
        "TechSupport": internet_addon(),
        "StreamingTV": internet_addon(),
        "StreamingMovies": internet_addon(),
        "Contract": contract,
        "PaperlessBilling": yes_no(0.6),
        "PaymentMethod": rng.choice(
            ["Electronic check", "Mailed check", "Bank transfer (automatic)", "Credit card (automatic)"],
            size=n,
        ),
        "MonthlyCharges": monthly,
        "TotalCharges": np.round(tenure * monthly * rng.uniform(0.9, 1.1, size=n), 2),
    })
    df.loc[df["tenure"] == 0, "TotalCharges"] = np.nan

    logit = (
        -1.0
        + 1.6 * (contract == "Month-to-month")
        + 0.8 * (internet == "Fiber optic")
        - 0.035 * tenure
        + 0.5 * (df["PaymentMethod"] == "Electronic check")
    )
    p = 1.0 / (1.0 + np.exp(-logit))
    df["Churn"] = np.where(rng.random(n) < p, "Yes", "No")
    return df


@pytest.fixture
def raw_frame():
    return make_raw()


@pytest.fixture
def cleaned(raw_frame):
    return clean_table(raw_frame)


@pytest.fixture
def table(cleaned):
    return cleaned.frame


@pytest.fixture
def csv_path(tmp_path, raw_frame):
    path = tmp_path / "telco.csv"
    # the raw export writes a single space for unknown TotalCharges
    raw_frame.to_csv(path, index=False, na_rep=" ")
    return path
