# ============================================================
# TELCO CHURN: end-to-end script
# Load -> Clean -> Segment EDA -> Split -> Logistic + Random forest
# -> Test evaluation (ROC/AUC) -> Repeated k-fold CV
# -> Threshold optimization (expected cost per customer)
#
# Usage: python telecom_churn_modeling.py data/WA_Fn-UseC_-Telco-Customer-Churn.csv -o outputs
# ============================================================

import sys

from telco_churn.cli import main

if __name__ == "__main__":
    sys.exit(main())
