import os
import re
import io
import sys
import shutil
import tempfile
import subprocess
import itertools
import numpy as np
import pandas as pd
from snprel.misc import Logger


PAR_FILE = "MyData.par"
GTYPE_FILE = "EMIBD9_Gen.dat"
MISSING_CODE = "3"


class EMIBD9ParseError(ValueError):
    '''Raised when an EMIBD9 report cannot be parsed.'''


class EMIBD9Platform(object):
    '''The files and command needed to run EMIBD9 on one operating system.

    Args:
        | name (str): operating system name.
        | program_l (list of strs): files which must be present in the EMIBD9 folder (executable plus libraries).
        | cmd_l (list of strs): command to run in the run directory.
    '''

    def __init__(self, name, program_l, cmd_l):
        self.name = name
        self.program_l = program_l
        self.cmd_l = cmd_l


    @classmethod
    def for_system(cls, system=None, parallel=False, ncores=1):
        '''Resolve the platform for an operating system, by default the current one.

        Args:
            | system (str): "Windows", "Linux" or "Darwin"; taken from sys.platform if None.
            | parallel (boolean): run the MPI build through mpirun (Linux and Darwin only).
            | ncores (int): # of processes for mpirun.
        '''

        if system is None:
            system = "Windows" if sys.platform.startswith("win") else "Darwin" if sys.platform == "darwin" else "Linux"
        mpi_cmd_l = ["mpirun", "-np", str(ncores), "--use-hwthread-cpus", "./EM_IBD_P_mpi", "INP:" + PAR_FILE]
        if system == "Windows":
            return cls(system, ["EM_IBD_P.exe", "impi.dll", "libiomp5md.dll"], ["EM_IBD_P.exe", "INP:" + PAR_FILE])
        elif system == "Linux":
            if parallel:
                return cls(system, ["EM_IBD_P_mpi"], mpi_cmd_l)
            return cls(system, ["EM_IBD_P"], ["./EM_IBD_P", "INP:" + PAR_FILE])
        elif system == "Darwin":
            if parallel:
                return cls(system, ["EM_IBD_P_mpi"], mpi_cmd_l)
            return cls(system, ["EM_IBD_P", "libquadmath.0.dylib", "libmpi_usempif08.40.dylib"], ["./EM_IBD_P", "INP:" + PAR_FILE])
        raise ValueError("Unsupported operating system: {0}".format(system))


class EMIBD9Result(object):
    '''Parsed EMIBD9 report.

    Attributes:
        | rel (DataFrame): square matrix of relatedness r(1,2), index and columns are the individual IDs.
        | raw (DataFrame): the IBD table as reported (individuals numbered 1..n).
        | processed (DataFrame): one row per unique pair without self comparisons: Ind1, Ind2 and the IBD mode probabilities plus r(1,2).
        | inbreeding (DataFrame): individual diversity and inbreeding table, None if absent from the report.
        | run_dir (str): folder holding the EMIBD9 inputs, programs and report. A temporary folder is left for the caller to remove.
    '''

    def __init__(self, rel, raw, processed, inbreeding=None, run_dir=None):
        self.rel = rel
        self.raw = raw
        self.processed = processed
        self.inbreeding = inbreeding
        self.run_dir = run_dir


def write_parameter_file(par_path, n_ind, n_loc, inbreed=False, gtype_file=GTYPE_FILE, outfile="EMIBD9_Res.ibd9", iseed=42):
    '''Write the EMIBD9 parameter file, one value per line.'''

    par_l = [n_ind, n_loc, 2, 1 if inbreed else 0, gtype_file, outfile, iseed, 1, 1, 0]
    with open(par_path, "w") as par_stream:
        par_stream.write("\n".join(str(par) for par in par_l) + "\n")


def write_genotype_file(gtype_path, genotypes):
    '''Write the EMIBD9 genotype file: the individuals numbered 1..n on the first line, then one line per individual of concatenated dosages with
    3 coding a missing call.'''

    geno_arr = genotypes.values
    with open(gtype_path, "w") as gtype_stream:
        gtype_stream.write(" ".join(str(i) for i in range(1, genotypes.n_ind + 1)) + "\n")
        for row_arr in geno_arr:
            gtype_stream.write("".join(MISSING_CODE if np.isnan(g) else str(int(g)) for g in row_arr) + "\n")


def find_line(line_l, pattern):
    '''Index of the first line matching a regular expression, or None.'''

    regex = re.compile(pattern)
    return next((i for i, line in enumerate(line_l) if regex.search(line)), None)


def parse_emibd9_output(line_l, ind_names):
    '''Parse an EMIBD9 report.

    The IBD table header is 2 lines after the line starting with "IBD" and its rows end 4 lines before the line containing "Indiv genotypes".
    The inbreeding table, if present, starts 2 lines after the line starting with "Indiv genotypes at polymorphic loci".

    Args:
        | line_l (list of strs): lines of the report.
        | ind_names (list of strs): individual IDs in the order they were numbered in the genotype file.

    Returns:
        EMIBD9Result
    '''

    line_l = [line.rstrip("\r\n") for line in line_l]
    ibd_idx = find_line(line_l, r"^IBD")
    geno_idx = find_line(line_l, r"Indiv genotypes")
    if ibd_idx is None or geno_idx is None:
        raise EMIBD9ParseError("EMIBD9 output lacks the {0} section marker.".format("'IBD'" if ibd_idx is None else "'Indiv genotypes'"))
    header_idx = ibd_idx + 2
    if header_idx >= len(line_l) or header_idx + 1 >= geno_idx - 3:
        raise EMIBD9ParseError("EMIBD9 output contains no IBD table rows.")
    heading_l = line_l[header_idx].split()
    row_l = [line.split() for line in line_l[header_idx + 1:geno_idx - 3]]
    bad_row_l = [i for i, row in enumerate(row_l) if len(row) < len(heading_l)]
    if bad_row_l:
        raise EMIBD9ParseError("EMIBD9 IBD table line {0} has fewer fields than the header.".format(header_idx + 2 + bad_row_l[0]))
    raw_df = pd.DataFrame(data=[row[:len(heading_l)] for row in row_l], columns=heading_l)
    try:
        raw_df = raw_df.apply(pd.to_numeric)
    except ValueError as e:
        raise EMIBD9ParseError("EMIBD9 IBD table contains non-numeric values: {0}".format(e))
    if "Indiv1" not in raw_df.columns or "Indiv2" not in raw_df.columns or "r(1,2)" not in raw_df.columns:
        raise EMIBD9ParseError("EMIBD9 IBD table lacks the Indiv1, Indiv2 or r(1,2) column.")

    index_arr = raw_df[["Indiv1", "Indiv2"]].values
    if ((index_arr < 1) | (index_arr > len(ind_names))).any():
        raise EMIBD9ParseError("EMIBD9 IBD table refers to individuals outside 1..{0}.".format(len(ind_names)))
    name_arr = np.asarray(ind_names, dtype=object)
    rel_df = pd.DataFrame(data=np.nan, index=ind_names, columns=ind_names)
    for ind1, ind2, rel in raw_df[["Indiv1", "Indiv2", "r(1,2)"]].itertuples(index=False):
        rel_df.iat[int(ind1) - 1, int(ind2) - 1] = rel

    #Drop self and redundant comparisons.
    pair_df = pd.DataFrame(list(itertools.combinations(range(1, len(ind_names) + 1), 2)), columns=["Indiv1", "Indiv2"])
    processed_df = pair_df.merge(raw_df, on=["Indiv1", "Indiv2"], how="inner")
    keep_col_l = processed_df.columns[processed_df.columns.get_loc("Indiv2") + 1:].tolist()
    keep_col_l = keep_col_l[-10:] if len(keep_col_l) >= 10 else keep_col_l
    processed_df.insert(0, "Ind1", name_arr[processed_df["Indiv1"].values.astype(int) - 1])
    processed_df.insert(1, "Ind2", name_arr[processed_df["Indiv2"].values.astype(int) - 1])
    processed_df = processed_df[["Ind1", "Ind2"] + keep_col_l]

    inbreeding_df = None
    inbreed_idx = find_line(line_l, r"^Indiv genotypes at polymorphic loci")
    if inbreed_idx is not None and inbreed_idx + 2 < len(line_l):
        inbreed_txt = "\n".join(line_l[inbreed_idx + 2:])
        inbreeding_df = pd.read_csv(io.StringIO(inbreed_txt), sep=r"\s+", nrows=len(ind_names))
    return EMIBD9Result(rel_df, raw_df, processed_df, inbreeding_df)


class EMIBD9(object):
    '''Runs the relatedness estimation program EMIBD9 (Wang 2022) on SNP genotypes and reads back the pairwise relatedness and IBD coefficients.

    EMIBD9 must be installed; emibd9_path points to the folder containing the executable (EM_IBD_P.exe on Windows, EM_IBD_P on Mac and Linux,
    EM_IBD_P_mpi for parallel runs via mpirun). Individuals are passed to EMIBD9 numbered 1..n, so its 20 character limit on IDs does not apply.
    Without outpath the run happens in a new temporary folder, which is not removed; its path is returned as EMIBD9Result.run_dir.
    '''

    def __init__(self, emibd9_path=None, outfile="EMIBD9_Res.ibd9", outpath=None, inbreed=False, parallel=False, ncores=1, iseed=42,
                 platform=None, timeout=None, verbosity=2, logger=None):

        self.logger = logger if logger is not None else Logger(verbosity)
        self.emibd9_path = emibd9_path if emibd9_path is not None else os.getcwd()
        self.outfile = outfile
        self.outpath = outpath
        self.inbreed = inbreed
        self.iseed = iseed
        self.platform = platform if platform is not None else EMIBD9Platform.for_system(parallel=parallel, ncores=ncores)
        self.timeout = timeout


    def check_programs(self):
        '''Raise FileNotFoundError if any of the platform's EMIBD9 files is absent from emibd9_path.'''

        missing_l = [prog for prog in self.platform.program_l if not os.path.exists(os.path.join(self.emibd9_path, prog))]
        if missing_l:
            raise FileNotFoundError("Cannot find {0} in the specified folder given by emibd9_path: {1}".format(", ".join(missing_l), self.emibd9_path))
        self.logger.log("Found necessary files to run EMIBD9.", level=1)


    def run(self, genotypes):
        '''Main method: write the EMIBD9 input files, run EMIBD9 and parse its report.

        Args:
            genotypes (GenotypeMatrix): the SNP genotypes.

        Returns:
            EMIBD9Result
        '''

        self.logger.log("Starting EMIBD9.", level=1)
        self.check_programs()
        run_dir = self.outpath if self.outpath is not None else tempfile.mkdtemp(prefix="emibd9_")
        if not os.path.exists(run_dir):
            os.makedirs(run_dir)
        for prog in self.platform.program_l:
            shutil.copy2(os.path.join(self.emibd9_path, prog), run_dir)

        self.logger.log("Writing EMIBD9 input files to {0}...".format(run_dir))
        write_parameter_file(os.path.join(run_dir, PAR_FILE), genotypes.n_ind, genotypes.n_loc, inbreed=self.inbreed,
                             gtype_file=GTYPE_FILE, outfile=self.outfile, iseed=self.iseed)
        write_genotype_file(os.path.join(run_dir, GTYPE_FILE), genotypes)

        self.logger.log("Running: {0}".format(" ".join(self.platform.cmd_l)))
        cmd_l = list(self.platform.cmd_l)
        if self.platform.name == "Windows":
            cmd_l[0] = os.path.join(run_dir, cmd_l[0])
        return_code = subprocess.run(cmd_l, cwd=run_dir, timeout=self.timeout).returncode
        if return_code != 0:
            raise RuntimeError("EMIBD9 command failed with exit code {0}: {1}".format(return_code, " ".join(self.platform.cmd_l)))

        with open(os.path.join(run_dir, self.outfile)) as out_stream:
            line_l = out_stream.readlines()
        result = parse_emibd9_output(line_l, genotypes.ind_names)
        result.run_dir = run_dir
        if result.inbreeding is not None:
            self.logger.log("Exporting individual diversity and inbreeding values.", level=1)
        self.logger.log("Completed: EMIBD9.", level=1)
        return result
