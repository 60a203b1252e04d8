import numpy as np
import pandas as pd
from scipy import stats
from natsort import natsorted
from snprel.misc import Logger


OUTLIER_COL_L = ["Outlier", "ind1", "ind2", "zscore", "p"]


def compute_pairwise_counts(genotypes):
    '''Count the pedigree inconsistent loci for every pair of individuals, i.e. loci where one individual is homozygous for one allele (dosage 0)
    and the other is homozygous for the other allele (dosage 2). Such a locus is inconsistent with a parent-offspring relationship whatever the
    genotype of the other parent. Loci with a missing call in either individual are not counted.

    Args:
        genotypes (GenotypeMatrix): the SNP genotypes.

    Returns:
        count_df (DataFrame): index and columns are the individual IDs. Only the lower triangle (row position > column position) is
        populated; the diagonal and upper triangle are NaN.
    '''

    geno_arr = genotypes.values
    n_ind = geno_arr.shape[0]
    count_arr = np.full((n_ind, n_ind), np.nan)
    for i in range(1, n_ind):
        #NaN propagates through vect and never equals 2 or 20, so missing calls are skipped.
        vect = geno_arr[i, :] * 10 + geno_arr[:i, :]
        count_arr[i, :i] = ((vect == 2) | (vect == 20)).sum(axis=1)
    count_df = pd.DataFrame(data=count_arr, index=genotypes.ind_names, columns=genotypes.ind_names)
    return count_df


def counts_to_long(count_df):
    '''Flatten a pairwise count table into one row per pair, ordered by column and then row.

    Returns:
        long_df (DataFrame): columns are ind1 (row individual), ind2 (column individual) and count.
    '''

    col_idx_arr, row_idx_arr = np.nonzero(~np.isnan(count_df.values.T))
    long_df = pd.DataFrame({"ind1": count_df.index.values[row_idx_arr],
                            "ind2": count_df.columns.values[col_idx_arr],
                            "count": count_df.values[row_idx_arr, col_idx_arr].astype(int)})
    return long_df


def get_count_summary(count_df, iqr_range=1.5):
    '''Summary statistics of the pairwise counts used to delimit outliers.

    Args:
        | count_df (DataFrame): pairwise count table.
        | iqr_range (float): number of interquartile ranges below the first quartile at which the cutoff lies.

    Returns:
        summary_s (Series): n, mean, sd (sample standard deviation), q1, median, q3, iqr and cutoff (q1 - iqr_range*iqr).
    '''

    count_arr = count_df.values[~np.isnan(count_df.values)]
    if count_arr.size == 0:
        q1, median, q3 = np.nan, np.nan, np.nan
    else:
        q1, median, q3 = np.percentile(count_arr, [25, 50, 75])
    mean = count_arr.mean() if count_arr.size > 0 else np.nan
    sd = count_arr.std(ddof=1) if count_arr.size > 1 else np.nan
    iqr = q3 - q1
    summary_s = pd.Series({"n": count_arr.size, "mean": mean, "sd": sd, "q1": q1, "median": median, "q3": q3,
                           "iqr": iqr, "cutoff": q1 - iqr_range * iqr})
    return summary_s


def classify_outliers(count_df, iqr_range=1.5):
    '''Find pairs with fewer pedigree inconsistent loci than expected of unrelated individuals: the count must be below both the median and the
    lower fence of a boxplot (q1 - iqr_range*iqr).

    Args:
        | count_df (DataFrame): pairwise count table.
        | iqr_range (float): number of interquartile ranges delimiting outliers.

    Returns:
        outlier_df (DataFrame): one row per outlying pair with columns Outlier (the count), ind1, ind2, zscore and p, sorted by descending count.
        Empty if there are no outliers. The z-score and p-value are NaN when the standard deviation of the counts is zero or undefined.
    '''

    summary_s = get_count_summary(count_df, iqr_range=iqr_range)
    long_df = counts_to_long(count_df)
    outlier_b = (long_df["count"] < summary_s["median"]) & (long_df["count"] < summary_s["cutoff"])
    outlier_df = long_df.loc[outlier_b, ["count", "ind1", "ind2"]].rename(columns={"count": "Outlier"})
    if outlier_df.empty:
        return pd.DataFrame(columns=OUTLIER_COL_L)
    mean, sd = summary_s["mean"], summary_s["sd"]
    with np.errstate(divide="ignore", invalid="ignore"):
        zscore_arr = -(mean - outlier_df["Outlier"].values) / sd
    if np.isfinite(sd) and sd > 0:
        p_arr = np.round(stats.norm.cdf(zscore_arr, loc=mean, scale=sd), 8)
    else:
        p_arr = np.full(zscore_arr.shape, np.nan)
    outlier_df["zscore"] = zscore_arr
    outlier_df["p"] = p_arr
    outlier_df = outlier_df.drop_duplicates(subset=["ind1", "ind2"])
    outlier_df = outlier_df.sort_values(by="Outlier", ascending=False, kind="mergesort").reset_index(drop=True)
    return outlier_df[OUTLIER_COL_L]


def select_removals(outlier_df, method="best", missing_count_fn=None, random_state=None):
    '''Choose one individual to remove from each outlying pair.

    Args:
        | outlier_df (DataFrame): outlying pairs, must contain columns ind1 and ind2.
        | method (str): "best" removes the individual with more missing calls (ind1 on a tie); "random" picks one at random.
        | missing_count_fn (callable): maps an individual ID to its # of missing calls, required for "best".
        | random_state (int or numpy.random.RandomState): seed or generator for "random".

    Returns:
        remove_l (list of strs): unique IDs of the individuals to remove, in order of nomination.
    '''

    if method not in ("best", "random"):
        raise ValueError("method must be 'best' or 'random', not '{0}'".format(method))
    pair_l = outlier_df.drop_duplicates(subset=["ind1", "ind2"])[["ind1", "ind2"]].values.tolist()
    nominated_l = []
    if method == "best":
        if missing_count_fn is None:
            raise ValueError("missing_count_fn is required for method 'best'.")
        for ind1, ind2 in pair_l:
            nominated_l.append(ind1 if missing_count_fn(ind1) >= missing_count_fn(ind2) else ind2)
    else:
        rng = random_state if isinstance(random_state, np.random.RandomState) else np.random.RandomState(random_state)
        for pair in pair_l:
            nominated_l.append(pair[rng.randint(2)])
    remove_l = list(dict.fromkeys(nominated_l))
    return remove_l


class ParentOffspringResult(object):
    '''Outcome of a ParentOffspringFilter run. Holds everything needed to report or plot the analysis.'''

    def __init__(self, genotypes, count_df, outlier_df, removed_l, summary_s):
        self.genotypes = genotypes
        self.count_df = count_df
        self.outlier_df = outlier_df
        self.removed_l = removed_l
        self.summary_s = summary_s

    @property
    def cutoff(self):
        return self.summary_s["cutoff"]

    @property
    def median(self):
        return self.summary_s["median"]

    @property
    def q1(self):
        return self.summary_s["q1"]

    @property
    def iqr(self):
        return self.summary_s["iqr"]


class ParentOffspringFilter(object):
    '''Removes individuals suspected of being in a parent-offspring relationship with another individual in the sample.

    If two individuals are parent and offspring, the true number of pedigree inconsistent loci between them is zero, but SNP calling is not
    infallible. The pairwise counts are therefore compared with those of the (mostly unrelated) sample and pairs with outlying low counts are
    flagged. Loci can be filtered stringently on reproducibility and read depth before counting to reduce miscalls; these filters only affect
    the counting, not the returned genotypes. Note that technical replicates of the same individual will also be flagged.
    '''

    def __init__(self, min_rdepth=12, min_reproducibility=1, iqr_range=1.5, method="best", rm_monomorphs=False, random_state=None,
                 verbosity=2, logger=None):

        if method not in ("best", "random"):
            raise ValueError("method must be 'best' or 'random', not '{0}'".format(method))
        self.logger = logger if logger is not None else Logger(verbosity)
        self.min_rdepth = min_rdepth
        self.min_reproducibility = min_reproducibility
        self.iqr_range = iqr_range
        self.method = method
        self.rm_monomorphs = rm_monomorphs
        self.random_state = random_state


    def filter(self, genotypes):
        '''Main method: find parent-offspring pairs and remove one individual of each.

        Args:
            genotypes (GenotypeMatrix): the SNP genotypes.

        Returns:
            result (ParentOffspringResult): contains the filtered genotypes (the input unchanged if no pairs were found), the pairwise counts,
            the outlying pairs, the removed individuals and the count summary statistics.
        '''

        self.logger.log("Starting parent-offspring filter.", level=1)
        count_genotypes = self.prefilter(genotypes)
        self.logger.log("Generating null expectation for distribution of counts of pedigree incompatibility...")
        count_df = compute_pairwise_counts(count_genotypes)
        self.logger.log("Identifying outliers with lower than expected counts of pedigree inconsistencies...")
        summary_s = get_count_summary(count_df, iqr_range=self.iqr_range)
        outlier_df = classify_outliers(count_df, iqr_range=self.iqr_range)

        if outlier_df.empty:
            self.logger.log("No individuals were found to be in parent offspring relationship, therefore the genotypes are returned unchanged.", level=1)
            self.logger.log("Completed: parent-offspring filter.", level=1)
            return ParentOffspringResult(genotypes, count_df, outlier_df, [], summary_s)

        if self.method == "best":
            self.logger.log("Selecting one individual based on call rate...")
            missing_s = genotypes.missing_counts()
            removed_l = select_removals(outlier_df, method="best", missing_count_fn=lambda ind: missing_s[ind])
        else:
            self.logger.log("Selecting one individual at random...")
            removed_l = select_removals(outlier_df, method="random", random_state=self.random_state)
        filtered = genotypes.drop_individuals(removed_l)
        if self.rm_monomorphs:
            filtered = filtered.filter_monomorphs()

        self.logger.log("Initial number of individuals: {0}".format(genotypes.n_ind))
        self.logger.log("Pairs of individuals in a parent offspring relationship:\n" + outlier_df.to_string())
        self.logger.log("Individuals removed: {0}".format(",".join(natsorted(removed_l))))
        self.logger.log("Completed: parent-offspring filter.", level=1)
        return ParentOffspringResult(filtered, count_df, outlier_df, removed_l, summary_s)


    def prefilter(self, genotypes):
        '''Filter loci stringently on reproducibility and read depth to minimise miscalls. A filter is skipped with a warning if its locus
        metric is absent.'''

        if genotypes.has_loc_metric("RepAvg"):
            genotypes = genotypes.filter_reproducibility(threshold=self.min_reproducibility)
        else:
            self.logger.warn("Dataset does not include RepAvg among the locus metrics, therefore the reproducibility filter was not used.")
        if genotypes.has_loc_metric("rdepth"):
            genotypes = genotypes.filter_rdepth(lower=self.min_rdepth)
        else:
            self.logger.warn("Dataset does not include rdepth among the locus metrics, therefore the read depth filter was not used.")
        return genotypes
