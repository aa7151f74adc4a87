from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    REP = "rep"
    BUYER = "buyer"


class Scenario(str, Enum):
    ATS = "ats"
    PREORDER_PO = "preorder_po"
    PREORDER_NO_PO = "preorder_no_po"


class View(str, Enum):
    ADMIN_PRODUCTS = "admin_products"
    ADMIN_INVENTORY = "admin_inventory"
    ADMIN_MODAL = "admin_modal"
    BUYER_ATS = "buyer_ats"
    BUYER_PREORDER = "buyer_preorder"
    REP_ATS = "rep_ats"
    REP_PREORDER = "rep_preorder"
    XLSX = "xlsx"
    PDF = "pdf"


class RowBehavior(str, Enum):
    SHOW = "show"
    HIDE = "hide"
