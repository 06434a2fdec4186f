"""Choosing which tables get their data exported.

The schema exporter scripts table *data* only for a selected set of
tables.  The selection comes from a table-selection file, plus a built-in
list of lookup tables and name patterns when auto-selection is enabled.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_AUTO_SELECT_TABLE_NAMES: tuple[str, ...] = (
    # MT_Main
    "T_Folder_Paths",
    # MT DBs
    "T_Peak_Matching_Defaults",
    "T_Process_Config",
    "T_Process_Config_Parameters",
    "T_Quantitation_Defaults",
    # MTS_Master
    "T_MTS_DB_Types",
    "T_MTS_MT_DBs",
    "T_MTS_Peptide_DBs",
    "T_MTS_Servers",
    "T_MyEMSL_Cache_Paths",
    # Peptide DB
    "T_Dataset_Scan_Type_Name",
    # Prism_IFC
    "T_Match_Methods",
    "T_SP_Categories",
    "T_SP_Column_Direction_Types",
    "T_SP_Glossary",
    "T_SP_List",
    # Prism_RPT
    "T_Analysis_Job_Processor_Tools",
    "T_Analysis_Job_Processors",
    "T_Status",
    # DMS5
    "T_Dataset_Rating_Name",
    "T_Default_PSM_Job_Types",
    "T_Enzymes",
    "T_Instrument_Ops_Role",
    "T_MiscPaths",
    "T_Modification_Types",
    "T_MyEMSLState",
    "T_Predefined_Analysis_Scheduling_Rules",
    "T_Research_Team_Roles",
    "T_Residues",
    "T_User_Operations",
    # Data_Package
    "T_Properties",
    "T_URI_Paths",
    # Manager Control
    "T_Event_Target",
    "T_Mgrs",
    "T_MgrState",
    "T_MgrType_ParamType_Map",
    "T_MgrTypes",
    "T_ParamType",
    # Ontology_Lookup
    "ontology",
    "T_Unimod_AminoAcids",
    "T_Unimod_Bricks",
    "T_Unimod_Specificity_NL",
    # DMS_Pipeline and DMS_Capture
    "T_Automatic_Jobs",
    "T_Default_SP_Params",
    "T_Processor_Instrument",
    "T_Processor_Tool",
    "T_Processor_Tool_Group_Details",
    "T_Processor_Tool_Groups",
    "T_Scripts",
    "T_Scripts_History",
    "T_Signatures",
    "T_Step_Tools",
    # Protein Sequences
    "T_Annotation_Types",
    "T_Archived_File_Types",
    "T_Creation_Option_Keywords",
    "T_Creation_Option_Values",
    "T_Naming_Authorities",
    "T_Output_Sequence_Types",
    "T_Protein_Collection_Types",
    # dba
    "AlertContacts",
    "AlertSettings",
)

DEFAULT_AUTO_SELECT_TABLE_PATTERNS: tuple[str, ...] = (
    ".*_?Type_?Name",
    ".*_?State_?Name",
    ".*_State",
    ".*_States",
)


def auto_select_tables(enabled: bool = True) -> tuple[list[str], list[str]]:
    """Return ``(table_names, regex_patterns)`` for automatic data export.

    Both lists are empty when auto-selection is disabled.
    """
    if not enabled:
        return [], []
    return (
        list(DEFAULT_AUTO_SELECT_TABLE_NAMES),
        list(DEFAULT_AUTO_SELECT_TABLE_PATTERNS),
    )


def load_table_names(path: Path | str | None) -> list[str]:
    """Read a table-selection file.

    One table name per line; blank lines are ignored and duplicates
    collapsed.  Order is not significant, so names come back sorted.

    Args:
        path: The file to read.  ``None`` or ``""`` selects nothing.

    Returns:
        Sorted unique table names; empty if the file is missing or unreadable.
    """
    if not path or not str(path).strip():
        return []

    data_file = Path(path)
    if not data_file.is_file():
        logger.warning("Table data file not found; default tables will be used")
        logger.error("File not found: %s", data_file.resolve())
        return []

    names: set[str] = set()
    try:
        with open(data_file, encoding="utf-8-sig") as fh:
            for line in fh:
                name = line.strip()
                if name:
                    names.add(name)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Error reading table data file %s: %s", data_file, exc)
        return []

    return sorted(names)
