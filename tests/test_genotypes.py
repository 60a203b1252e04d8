import os
import shutil
import tempfile
import unittest
import numpy as np
import pandas as pd
from snprel.genotypes import GenotypeMatrix
from snprel.misc import Logger


class Test(unittest.TestCase):


    def setUp(self):
        self.logger = Logger(verbosity=0)
        self.geno_df = pd.DataFrame({"loc1": [0, 1, 2], "loc2": [1, 1, np.nan], "loc3": [np.nan, np.nan, np.nan], "loc4": [2, np.nan, 0]},
                                    index=["ind1", "ind2", "ind3"])
        self.loc_metrics_df = pd.DataFrame({"RepAvg": [1.0, 0.95, 1.0, 1.0], "rdepth": [20.0, 15.0, 3.0, 1500.0]},
                                           index=["loc1", "loc2", "loc3", "loc4"])
        self.genotypes = GenotypeMatrix(self.geno_df, loc_metrics_df=self.loc_metrics_df, logger=self.logger)
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp_dir)

    def test_dimensions(self):
        self.assertEqual(3, self.genotypes.n_ind)
        self.assertEqual(4, self.genotypes.n_loc)
        self.assertEqual(["ind1", "ind2", "ind3"], self.genotypes.ind_names)
        self.assertEqual(["loc1", "loc2", "loc3", "loc4"], self.genotypes.loc_names)

    def test_invalid_genotype(self):
        self.geno_df.loc["ind1", "loc1"] = 3
        with self.assertRaises(ValueError):
            GenotypeMatrix(self.geno_df, logger=self.logger)

    def test_non_numeric_genotype(self):
        geno_df = pd.DataFrame({"loc1": ["0", "x"], "loc2": ["2", "1"]}, index=["ind1", "ind2"])
        with self.assertRaises(ValueError):
            GenotypeMatrix(geno_df, logger=self.logger)

    def test_duplicate_individuals(self):
        self.geno_df.index = ["ind1", "ind1", "ind3"]
        with self.assertRaises(ValueError):
            GenotypeMatrix(self.geno_df, logger=self.logger)

    def test_loc_metrics_must_match_loci(self):
        with self.assertRaises(ValueError):
            GenotypeMatrix(self.geno_df, loc_metrics_df=self.loc_metrics_df.iloc[:3, :], logger=self.logger)

    def test_missing_counts(self):
        self.assertEqual([1, 2, 2], self.genotypes.missing_counts().tolist())

    def test_drop_individuals(self):
        dropped = self.genotypes.drop_individuals(["ind2", "absent"])
        self.assertEqual(["ind1", "ind3"], dropped.ind_names)
        self.assertEqual(3, self.genotypes.n_ind)

    def test_filter_reproducibility(self):
        self.assertEqual(["loc1", "loc3", "loc4"], self.genotypes.filter_reproducibility(threshold=1).loc_names)

    def test_filter_rdepth(self):
        filtered = self.genotypes.filter_rdepth(lower=12)
        self.assertEqual(["loc1", "loc2"], filtered.loc_names)
        self.assertEqual(["loc1", "loc2"], filtered.loc_metrics_df.index.tolist())

    def test_filter_without_metric(self):
        with self.assertRaises(KeyError):
            GenotypeMatrix(self.geno_df, logger=self.logger).filter_rdepth(lower=12)

    def test_filter_monomorphs(self):
        self.assertEqual(["loc1", "loc2", "loc4"], self.genotypes.filter_monomorphs().loc_names)

    def test_filter_monomorphs_keeps_heterozygous_loci(self):
        geno_df = pd.DataFrame({"het": [1, 1, 1], "hom_ref": [0, 0, np.nan], "hom_alt": [2, np.nan, 2]}, index=["ind1", "ind2", "ind3"])
        genotypes = GenotypeMatrix(geno_df, logger=self.logger)
        self.assertEqual(["het"], genotypes.filter_monomorphs().loc_names)

    def test_keep_loci_by_name(self):
        self.assertEqual(["loc2", "loc4"], self.genotypes.keep_loci(["loc4", "loc2"]).loc_names)

    def test_from_csv(self):
        genotypes_path = os.path.join(self.tmp_dir, "genotypes.csv")
        loc_metrics_path = os.path.join(self.tmp_dir, "loc_metrics.csv")
        self.geno_df.to_csv(genotypes_path)
        self.loc_metrics_df.to_csv(loc_metrics_path)
        genotypes = GenotypeMatrix.from_csv(genotypes_path, loc_metrics_path=loc_metrics_path, logger=self.logger)
        self.assertEqual(self.genotypes.ind_names, genotypes.ind_names)
        self.assertTrue(genotypes.has_loc_metric("rdepth"))
        np.testing.assert_array_equal(self.genotypes.values, genotypes.values)

    def test_from_csv_missing_and_non_numeric_cells(self):
        genotypes_path = os.path.join(self.tmp_dir, "genotypes.csv")
        with open(genotypes_path, "w") as out_stream:
            out_stream.write("id,loc1,loc2\nind1,0,\nind2,NA,2\n")
        genotypes = GenotypeMatrix.from_csv(genotypes_path, logger=self.logger)
        self.assertEqual([1, 1], genotypes.missing_counts().tolist())
        with open(genotypes_path, "w") as out_stream:
            out_stream.write("id,loc1,loc2\nind1,0,x\nind2,1,2\n")
        with self.assertRaises(ValueError):
            GenotypeMatrix.from_csv(genotypes_path, logger=self.logger)


if __name__ == "__main__":
    unittest.main()
